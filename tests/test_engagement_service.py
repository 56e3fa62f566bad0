from itertools import permutations

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql.dml import Insert

from app.core.exceptions import BadRequestError, NotFoundError
from app.core.outcome import Absorbed, Recorded, Skipped
from app.core.session_ref import ANONYMOUS, KnownSession
from app.models import Faq, QueryActionRecord, QueryEvent, WidgetSession
from app.services.engagement_service import EngagementService
from tests.conftest import seed


async def new_event(db, result_count: int = 3) -> str:
    outcome = await EngagementService(db).log_query(
        chatbot_id="bot-1",
        session=KnownSession("sess-1"),
        query_text="How do I reset my password?",
        result_count=result_count,
    )
    assert isinstance(outcome, Recorded)
    return outcome.value


async def read_count(db, event_id: str) -> int:
    return await db.scalar(select(QueryEvent.read_count).where(QueryEvent.id == event_id))


async def hit_count(db, faq_id: str) -> int:
    return await db.scalar(select(Faq.hit_count).where(Faq.id == faq_id))


async def actions_of(db, event_id: str) -> dict:
    result = await db.execute(
        select(QueryActionRecord.faq_id, QueryActionRecord.action)
        .where(QueryActionRecord.event_id == event_id)
    )
    return dict(result.all())


@pytest.mark.asyncio
async def test_unknown_event_and_unknown_candidate_are_distinct(seeded):
    service = EngagementService(seeded)
    event_id = await new_event(seeded)

    with pytest.raises(NotFoundError) as missing_event:
        await service.record_action("no-such-event", "faq-1", "viewed")
    assert "No such event" in missing_event.value.message

    with pytest.raises(NotFoundError) as missing_faq:
        await service.record_action(event_id, "faq-404", "viewed")
    assert "No such candidate" in missing_faq.value.message

    assert await actions_of(seeded, event_id) == {}


@pytest.mark.asyncio
async def test_repeated_view_keeps_one_record_and_counts_every_hit(seeded):
    service = EngagementService(seeded)
    event_id = await new_event(seeded)

    first = await service.record_action(event_id, "faq-1", "viewed")
    second = await service.record_action(event_id, "faq-1", "viewed")

    assert first == Recorded(1)
    assert second == Recorded(1)
    count = await seeded.scalar(
        select(func.count(QueryActionRecord.id)).where(QueryActionRecord.event_id == event_id)
    )
    assert count == 1
    assert await read_count(seeded, event_id) == 1
    assert await hit_count(seeded, "faq-1") == 2


@pytest.mark.asyncio
async def test_read_count_counts_distinct_viewed_candidates(seeded):
    service = EngagementService(seeded)
    event_id = await new_event(seeded)

    await service.record_action(event_id, "faq-1", "viewed")
    await service.record_action(event_id, "faq-2", "viewed")
    await service.record_action(event_id, "faq-3", "not-viewed")

    assert await read_count(seeded, event_id) == 2
    assert await actions_of(seeded, event_id) == {
        "faq-1": "viewed",
        "faq-2": "viewed",
        "faq-3": "not-viewed",
    }
    assert await hit_count(seeded, "faq-3") == 0


async def distinct_viewed(db, event_id: str) -> int:
    return await db.scalar(
        select(func.count(func.distinct(QueryActionRecord.faq_id))).where(
            QueryActionRecord.event_id == event_id,
            QueryActionRecord.action == "viewed",
        )
    )


@pytest.mark.asyncio
async def test_read_count_follows_overwritten_views(seeded):
    service = EngagementService(seeded)
    event_id = await new_event(seeded)

    await service.record_action(event_id, "faq-1", "viewed")
    await service.record_action(event_id, "faq-2", "viewed")
    outcome = await service.record_action(event_id, "faq-1", "like")
    await service.record_action(event_id, "faq-2", "dislike")

    assert outcome == Recorded("like")
    assert await actions_of(seeded, event_id) == {"faq-1": "like", "faq-2": "dislike"}

    await service.record_action(event_id, "faq-3", "viewed")

    assert await distinct_viewed(seeded, event_id) == 1
    assert await read_count(seeded, event_id) == 1
    assert await hit_count(seeded, "faq-1") == 1
    assert await hit_count(seeded, "faq-3") == 1


@pytest.mark.asyncio
async def test_view_overwrites_a_stale_read_count(seeded):
    service = EngagementService(seeded)
    event_id = await new_event(seeded)

    await service.record_action(event_id, "faq-1", "viewed")
    await seeded.execute(update(QueryEvent).where(QueryEvent.id == event_id).values(read_count=0))
    await service.record_action(event_id, "faq-2", "viewed")
    assert await read_count(seeded, event_id) == 2

    await seeded.execute(update(QueryEvent).where(QueryEvent.id == event_id).values(read_count=5))
    await service.record_action(event_id, "faq-2", "viewed")
    assert await read_count(seeded, event_id) == 2


@pytest.mark.asyncio
async def test_action_orderings_converge(session_maker):
    async with session_maker() as db:
        await seed(db)
        await db.commit()

    deliveries = [
        ("faq-1", "viewed"),
        ("faq-2", "viewed"),
        ("faq-1", "viewed"),
        ("faq-2", "viewed"),
    ]
    orderings = sorted(set(permutations(deliveries)))

    event_ids = []
    for ordering in orderings:
        async with session_maker() as db:
            event_id = await new_event(db)
            await db.commit()
        event_ids.append(event_id)

        # Each delivery arrives in its own request
        for faq_id, action in ordering:
            async with session_maker() as db:
                await EngagementService(db).record_action(event_id, faq_id, action)
                await db.commit()

    async with session_maker() as db:
        for event_id in event_ids:
            assert await read_count(db, event_id) == 2
            assert await actions_of(db, event_id) == {"faq-1": "viewed", "faq-2": "viewed"}
        assert await hit_count(db, "faq-1") == 2 * len(orderings)
        assert await hit_count(db, "faq-2") == 2 * len(orderings)


@pytest.mark.asyncio
async def test_counter_failure_keeps_the_action(seeded, monkeypatch):
    service = EngagementService(seeded)
    event_id = await new_event(seeded)

    async def broken_bump(faq_id):
        raise RuntimeError("counter table locked")

    monkeypatch.setattr(service, "_bump_hit", broken_bump)

    outcome = await service.record_action(event_id, "faq-1", "viewed")

    assert isinstance(outcome, Absorbed)
    assert outcome.stage == "view_counters"
    assert await actions_of(seeded, event_id) == {"faq-1": "viewed"}
    assert await read_count(seeded, event_id) == 0
    assert await hit_count(seeded, "faq-1") == 0


@pytest.mark.asyncio
async def test_failed_upsert_is_bad_request(seeded, monkeypatch):
    service = EngagementService(seeded)
    event_id = await new_event(seeded)
    original_execute = seeded.execute

    async def failing_execute(statement, *args, **kwargs):
        if isinstance(statement, Insert):
            raise OperationalError("INSERT INTO query_actions", {}, Exception("disk I/O error"))
        return await original_execute(statement, *args, **kwargs)

    monkeypatch.setattr(seeded, "execute", failing_execute)

    with pytest.raises(BadRequestError):
        await service.record_action(event_id, "faq-1", "like")

    monkeypatch.undo()
    assert await actions_of(seeded, event_id) == {}


@pytest.mark.asyncio
async def test_browse_with_session_logs_a_read_query(seeded):
    outcome = await EngagementService(seeded).record_browse("bot-1", "faq-2", KnownSession("sess-1"))

    assert isinstance(outcome, Recorded)
    event = await seeded.get(QueryEvent, outcome.value)
    assert event.query_text == "How do I change my email?"
    assert event.result_count == 1
    assert event.read_count == 1
    assert event.session_id == "sess-1"
    assert await actions_of(seeded, outcome.value) == {"faq-2": "viewed"}

    assert await hit_count(seeded, "faq-2") == 1
    last_hit_at = await seeded.scalar(select(Faq.last_hit_at).where(Faq.id == "faq-2"))
    assert last_hit_at is not None
    query_count = await seeded.scalar(
        select(WidgetSession.query_count).where(WidgetSession.id == "sess-1")
    )
    assert query_count == 1


@pytest.mark.asyncio
async def test_anonymous_browse_creates_nothing(seeded):
    outcome = await EngagementService(seeded).record_browse("bot-1", "faq-2", ANONYMOUS)

    assert isinstance(outcome, Skipped)
    assert await seeded.scalar(select(func.count(QueryEvent.id))) == 0
    assert await hit_count(seeded, "faq-2") == 0


@pytest.mark.asyncio
async def test_browse_of_faq_outside_chatbot_is_not_found(seeded):
    service = EngagementService(seeded)

    with pytest.raises(NotFoundError):
        await service.record_browse("bot-1", "faq-404", KnownSession("sess-1"))
    with pytest.raises(NotFoundError):
        await service.record_browse("bot-2", "faq-1", KnownSession("sess-1"))

    assert await seeded.scalar(select(func.count(QueryEvent.id))) == 0


@pytest.mark.asyncio
async def test_browse_failure_is_absorbed_as_a_whole(seeded):
    outcome = await EngagementService(seeded).record_browse("bot-1", "faq-2", KnownSession("ghost"))

    assert isinstance(outcome, Absorbed)
    assert outcome.stage == "browse_log"
    assert await seeded.scalar(select(func.count(QueryEvent.id))) == 0
    assert await seeded.scalar(select(func.count(QueryActionRecord.id))) == 0
    assert await hit_count(seeded, "faq-2") == 0
