from datetime import datetime, timedelta, timezone

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.models import Chatbot, Faq, Plan, Tenant, WidgetSession

FAQS = {
    "faq-1": ("How do I reset my password?", "Open Settings\\nthen choose Reset password."),
    "faq-2": ("How do I change my email?", "Go to Profile and edit the email field."),
    "faq-3": ("What are your opening hours?", "We are open 9am to 5pm."),
}


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )

    # SQLite savepoint recipe from the SQLAlchemy docs, plus foreign keys
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


async def seed(
    db: AsyncSession,
    max_queries_per_month=None,
    chatbot_status: str = "active",
) -> None:
    """Create one tenant with chatbot ``bot-1``, three FAQs and session ``sess-1``."""
    db.add(Plan(id=1, name="basic", max_queries_per_month=max_queries_per_month))
    await db.flush()
    db.add(Tenant(id="tenant-1", name="Acme", plan_id=1))
    await db.flush()
    db.add(Chatbot(id="bot-1", tenant_id="tenant-1", name="Support", status=chatbot_status))
    await db.flush()
    for faq_id, (question, answer) in FAQS.items():
        db.add(Faq(id=faq_id, chatbot_id="bot-1", question=question, answer=answer))
    db.add(WidgetSession(
        id="sess-1",
        chatbot_id="bot-1",
        token="tok-1",
        expires_at=datetime.now(timezone.utc) + timedelta(days=1),
    ))
    await db.flush()


@pytest_asyncio.fixture
async def seeded(db):
    await seed(db)
    return db
