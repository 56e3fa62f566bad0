"""Tenant and plan database models."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from app.core.database import Base


class Plan(Base):
    """Subscription plan limiting a tenant's monthly usage."""

    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)

    # NULL means unlimited
    max_queries_per_month = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tenants = relationship("Tenant", back_populates="plan")

    def __repr__(self):
        return f"<Plan(id={self.id}, name='{self.name}')>"


class Tenant(Base):
    """Tenant owning chatbots."""

    __tablename__ = "tenants"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    plan = relationship("Plan", back_populates="tenants")
    chatbots = relationship("Chatbot", back_populates="tenant", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}')>"
