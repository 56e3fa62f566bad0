"""Engagement log database models."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, UniqueConstraint, func
from sqlalchemy.orm import relationship
from app.core.database import Base

ACTION_VIEWED = "viewed"
ACTION_NOT_VIEWED = "not-viewed"
ACTION_LIKE = "like"
ACTION_DISLIKE = "dislike"

ACTION_KINDS = (ACTION_VIEWED, ACTION_NOT_VIEWED, ACTION_LIKE, ACTION_DISLIKE)


class QueryEvent(Base):
    """One user question turn, the unit of analytics."""

    __tablename__ = "query_events"

    # UUID generated by the application, not the database
    id = Column(String(36), primary_key=True)
    chatbot_id = Column(String(64), ForeignKey("chatbots.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(64), ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True, index=True)

    query_text = Column(Text, nullable=False)

    # Number of candidates shown, and how many of them were expanded
    result_count = Column(Integer, nullable=False, default=0)
    read_count = Column(Integer, nullable=False, default=0)

    # Operator flag excluding the question from analytics and quota
    ignored = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Relationships
    chatbot = relationship("Chatbot", back_populates="query_events")
    session = relationship("WidgetSession", back_populates="query_events")
    actions = relationship("QueryActionRecord", back_populates="event", order_by="QueryActionRecord.created_at")

    def __repr__(self):
        return f"<QueryEvent(id={self.id}, query='{self.query_text[:50]}...')>"


class QueryActionRecord(Base):
    """A user action on one candidate shown for a query event."""

    __tablename__ = "query_actions"
    __table_args__ = (
        UniqueConstraint("event_id", "faq_id", name="uq_query_actions_event_faq"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("query_events.id", ondelete="CASCADE"), nullable=False, index=True)
    faq_id = Column(String(64), ForeignKey("faqs.id", ondelete="CASCADE"), nullable=False, index=True)

    action = Column(String(20), nullable=False)  # 'viewed', 'not-viewed', 'like', 'dislike'

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    event = relationship("QueryEvent", back_populates="actions")
    faq = relationship("Faq", back_populates="actions")

    def __repr__(self):
        return f"<QueryActionRecord(event_id={self.event_id}, faq_id={self.faq_id}, action='{self.action}')>"
