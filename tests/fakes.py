"""In-memory collaborators for the query pipeline."""

from typing import Any, Dict, List, Optional

from app.schemas.query import AnswerSelection, SelectionDecision


def candidate(faq_id: str, question: str = "", score: float = 0.5) -> Dict[str, Any]:
    return {
        "faq_id": faq_id,
        "question": question,
        "answer": "",
        "synonym": "",
        "chatbot_id": "bot-1",
        "score": score,
        "metadata": {},
    }


def selection(*faq_ids: str, intro: str = "These answers may help") -> AnswerSelection:
    return AnswerSelection(
        intro=intro,
        decisions=[SelectionDecision(faq_id=faq_id) for faq_id in faq_ids],
    )


class FakeEmbedder:
    def __init__(self, vector: Optional[List[float]] = None, error: Optional[Exception] = None):
        self.vector = vector or [0.25] * 8
        self.error = error
        self.calls: List[str] = []

    async def generate_embedding(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.vector


class FakeSearcher:
    def __init__(self, results: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.results = results or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def hybrid_search(self, chatbot_id, query, vector, *policy):
        self.calls.append({"chatbot_id": chatbot_id, "query": query, "vector": vector, "policy": policy})
        if self.error:
            raise self.error
        return self.results


class FakeSelector:
    def __init__(self, result: Optional[AnswerSelection] = None, error: Optional[Exception] = None):
        self.result = result or AnswerSelection(intro="Nothing found", decisions=[])
        self.error = error
        self.calls: List[List[Dict[str, Any]]] = []

    async def select_answers(self, query, candidates):
        self.calls.append(list(candidates))
        if self.error:
            raise self.error
        return self.result


class AllowAllQuota:
    def __init__(self):
        self.calls: List[str] = []

    async def ensure_query_quota(self, db, chatbot_id):
        self.calls.append(chatbot_id)
