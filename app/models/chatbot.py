"""Chatbot, FAQ and widget session database models."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from app.core.database import Base

CHATBOT_ACTIVE = "active"


class Chatbot(Base):
    """Chatbot answering questions from its FAQ entries."""

    __tablename__ = "chatbots"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # 'active', 'inactive' or 'suspended'; only 'active' serves production traffic
    status = Column(String(20), nullable=False, default=CHATBOT_ACTIVE)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship("Tenant", back_populates="chatbots")
    faqs = relationship("Faq", back_populates="chatbot", cascade="all, delete-orphan")
    sessions = relationship("WidgetSession", back_populates="chatbot", cascade="all, delete-orphan")
    query_events = relationship("QueryEvent", back_populates="chatbot", cascade="all, delete-orphan")

    @property
    def is_active(self) -> bool:
        return self.status == CHATBOT_ACTIVE

    def __repr__(self):
        return f"<Chatbot(id={self.id}, name='{self.name}')>"


class Faq(Base):
    """FAQ entry, the candidate answer surfaced for a query."""

    __tablename__ = "faqs"

    id = Column(String(64), primary_key=True)
    chatbot_id = Column(String(64), ForeignKey("chatbots.id", ondelete="CASCADE"), nullable=False, index=True)

    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=True)
    synonym = Column(Text, nullable=True)

    # Display fields
    layout = Column(String(50), nullable=True)  # 'text', 'image', ...
    images = Column(Text, nullable=True)  # JSON list of URLs

    status = Column(String(20), nullable=False, default="active")

    # Hit counter, bumped once per recorded view
    hit_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_hit_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    chatbot = relationship("Chatbot", back_populates="faqs")
    actions = relationship("QueryActionRecord", back_populates="faq", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Faq(id={self.id}, question='{self.question[:50]}...')>"


class WidgetSession(Base):
    """End-user session opened by the chat widget."""

    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True)
    chatbot_id = Column(String(64), ForeignKey("chatbots.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(255), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    # Cumulative number of logged queries and browses
    query_count = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    chatbot = relationship("Chatbot", back_populates="sessions")
    query_events = relationship("QueryEvent", back_populates="session")

    def __repr__(self):
        return f"<WidgetSession(id={self.id}, chatbot_id='{self.chatbot_id}')>"
