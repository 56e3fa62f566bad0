import pytest
from sqlalchemy import func, select

from app.core.exceptions import BadRequestError, InvalidStateError, NotFoundError, ServiceUnavailableError
from app.core.outcome import Absorbed, Recorded, Skipped
from app.core.session_ref import ANONYMOUS, KnownSession
from app.models import Chatbot, Faq, QueryEvent, WidgetSession
from app.services import query_service as qs
from app.services.query_service import QueryService
from app.schemas.query import AnswerSelection, SelectionDecision
from tests.conftest import seed
from tests.fakes import (
    AllowAllQuota,
    FakeEmbedder,
    FakeSearcher,
    FakeSelector,
    candidate,
    selection,
)


def build_service(db, embedder=None, searcher=None, selector=None):
    return QueryService(
        db,
        embedder=embedder or FakeEmbedder(),
        searcher=searcher or FakeSearcher([candidate("faq-1", "How do I reset my password?", 0.9)]),
        selector=selector or FakeSelector(selection("faq-1")),
        quota=AllowAllQuota(),
    )


async def event_count(db) -> int:
    return await db.scalar(select(func.count(QueryEvent.id)))


@pytest.mark.asyncio
async def test_answer_with_session_logs_event(seeded):
    service = build_service(seeded)

    result = await service.answer("How do I reset my password?", "bot-1", KnownSession("sess-1"))

    response = result.response
    assert [c.faq_id for c in response.candidates] == ["faq-1"]
    assert response.candidates[0].answer == "Open Settings\nthen choose Reset password."
    assert response.candidates[0].layout == "text"
    assert response.intro == "These answers may help"
    assert isinstance(result.logging, Recorded)
    assert response.event_id == result.logging.value

    event = await seeded.get(QueryEvent, response.event_id)
    assert event.session_id == "sess-1"
    assert event.query_text == "How do I reset my password?"
    assert event.result_count == 1
    assert event.read_count == 0
    assert event.ignored is False

    query_count = await seeded.scalar(
        select(WidgetSession.query_count).where(WidgetSession.id == "sess-1")
    )
    assert query_count == 1


@pytest.mark.asyncio
async def test_anonymous_answer_leaves_no_trail(seeded):
    service = build_service(seeded)

    result = await service.answer("How do I reset my password?", "bot-1", ANONYMOUS)

    assert [c.faq_id for c in result.response.candidates] == ["faq-1"]
    assert result.response.event_id is None
    assert isinstance(result.logging, Skipped)
    assert await event_count(seeded) == 0
    query_count = await seeded.scalar(
        select(WidgetSession.query_count).where(WidgetSession.id == "sess-1")
    )
    assert query_count == 0


@pytest.mark.asyncio
async def test_query_text_is_trimmed_before_use(seeded):
    embedder = FakeEmbedder()
    service = build_service(seeded, embedder=embedder)

    result = await service.answer("  opening hours  ", "bot-1", KnownSession("sess-1"))

    assert embedder.calls == ["opening hours"]
    event = await seeded.get(QueryEvent, result.response.event_id)
    assert event.query_text == "opening hours"


@pytest.mark.asyncio
async def test_blank_query_is_rejected_before_any_work(seeded):
    embedder = FakeEmbedder()
    selector = FakeSelector(selection("faq-1"))
    quota = AllowAllQuota()
    service = QueryService(
        seeded,
        embedder=embedder,
        searcher=FakeSearcher(),
        selector=selector,
        quota=quota,
    )

    with pytest.raises(BadRequestError) as error:
        await service.answer("   ", "bot-1", KnownSession("sess-1"))

    assert error.value.status_code == 400
    assert quota.calls == []
    assert embedder.calls == []
    assert selector.calls == []
    assert await event_count(seeded) == 0


@pytest.mark.asyncio
async def test_unknown_chatbot_is_not_found(seeded):
    service = build_service(seeded)

    with pytest.raises(NotFoundError):
        await service.answer("hello", "bot-404", KnownSession("sess-1"))


@pytest.mark.asyncio
async def test_inactive_chatbot_rejected_in_production(db):
    await seed(db, chatbot_status="suspended")
    embedder = FakeEmbedder()
    service = build_service(db, embedder=embedder)

    with pytest.raises(InvalidStateError):
        await service.answer("How do I reset my password?", "bot-1", KnownSession("sess-1"))

    assert embedder.calls == []
    assert await event_count(db) == 0


@pytest.mark.asyncio
async def test_inactive_chatbot_answers_in_preview(db):
    await seed(db, chatbot_status="suspended")
    service = build_service(db)

    result = await service.answer("How do I reset my password?", "bot-1", ANONYMOUS, mode="preview")

    assert [c.faq_id for c in result.response.candidates] == ["faq-1"]


@pytest.mark.asyncio
async def test_embedding_failure_uses_fallback_vector(seeded):
    searcher = FakeSearcher([candidate("faq-1")])
    service = build_service(
        seeded,
        embedder=FakeEmbedder(error=RuntimeError("embedding API down")),
        searcher=searcher,
    )

    result = await service.answer("reset password", "bot-1", ANONYMOUS)

    vector = searcher.calls[0]["vector"]
    assert len(vector) == 3072
    assert set(vector) == {qs.FALLBACK_VECTOR_VALUE}
    assert [c.faq_id for c in result.response.candidates] == ["faq-1"]


@pytest.mark.asyncio
async def test_search_receives_policy_constants(seeded):
    searcher = FakeSearcher([candidate("faq-1")])
    service = build_service(seeded, searcher=searcher)

    await service.answer("reset password", "bot-1", ANONYMOUS)

    call = searcher.calls[0]
    assert call["chatbot_id"] == "bot-1"
    assert call["policy"] == (5, 0.3, 0.7, 0.45, 60)


@pytest.mark.asyncio
async def test_search_failure_continues_with_no_candidates(seeded):
    selector = FakeSelector(AnswerSelection(intro="Sorry, nothing found", decisions=[]))
    service = build_service(
        seeded,
        searcher=FakeSearcher(error=ConnectionError("elasticsearch unreachable")),
        selector=selector,
    )

    result = await service.answer("reset password", "bot-1", KnownSession("sess-1"))

    assert selector.calls == [[]]
    assert result.response.candidates == []
    assert result.response.intro == "Sorry, nothing found"

    event = await seeded.get(QueryEvent, result.response.event_id)
    assert event.result_count == 0


@pytest.mark.asyncio
async def test_selector_failure_is_service_unavailable(seeded):
    service = build_service(seeded, selector=FakeSelector(error=TimeoutError("LLM timed out")))

    with pytest.raises(ServiceUnavailableError):
        await service.answer("reset password", "bot-1", KnownSession("sess-1"))

    assert await event_count(seeded) == 0


@pytest.mark.asyncio
async def test_materialize_keeps_selector_order_and_skips_unusable(seeded):
    seeded.add(Faq(id="faq-empty", chatbot_id="bot-1", question="Empty?", answer=""))
    seeded.add(Chatbot(id="bot-2", tenant_id="tenant-1", name="Other"))
    await seeded.flush()
    seeded.add(Faq(id="faq-other", chatbot_id="bot-2", question="Other bot?", answer="Yes"))
    await seeded.flush()

    chosen = AnswerSelection(
        intro="Maybe these",
        decisions=[
            SelectionDecision(faq_id="faq-3"),
            SelectionDecision(faq_id="faq-missing"),
            SelectionDecision(faq_id="faq-empty"),
            SelectionDecision(faq_id="faq-2", include=False),
            SelectionDecision(faq_id="faq-other"),
            SelectionDecision(faq_id="faq-1"),
            SelectionDecision(faq_id="faq-3"),
        ],
    )
    service = build_service(seeded, selector=FakeSelector(chosen))

    result = await service.answer("anything", "bot-1", KnownSession("sess-1"))

    assert [c.faq_id for c in result.response.candidates] == ["faq-3", "faq-1"]
    event = await seeded.get(QueryEvent, result.response.event_id)
    assert event.result_count == 2


@pytest.mark.asyncio
async def test_logging_failure_does_not_fail_the_answer(seeded):
    service = build_service(seeded)

    # Session id with no row violates the foreign key inside the logging savepoint
    result = await service.answer("How do I reset my password?", "bot-1", KnownSession("ghost"))

    assert [c.faq_id for c in result.response.candidates] == ["faq-1"]
    assert result.response.event_id is None
    assert isinstance(result.logging, Absorbed)
    assert result.logging.stage == "query_log"

    # Request transaction is still usable
    assert await event_count(seeded) == 0
    assert await seeded.get(Chatbot, "bot-1") is not None


def test_fallback_vector_uses_configured_dimension():
    vector = qs.fallback_vector()
    assert len(vector) == 3072
    assert qs.fallback_vector(4) == [0.001, 0.001, 0.001, 0.001]
