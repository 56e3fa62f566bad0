"""LLM service that picks which FAQ candidates answer a user question."""

import json
import logging
import re
from typing import List, Dict, Any, Optional
import httpx

from app.core.config import settings
from app.schemas.query import AnswerSelection, SelectionDecision

logger = logging.getLogger(__name__)

NO_RESULTS_INTRO = "Sorry, we couldn't find anything related. Please try asking another way."
PARSE_ERROR_INTRO = "Sorry, something went wrong while preparing the answer."

SYSTEM_PROMPT = """Based on the meaning of the user's question, pick the Q&A entries from the knowledge base that may answer it.

SELECTION RULES:
- Judge relevance from the question, answer and synonym fields
- The synonym field is important: if the user's wording matches a synonym, treat the entry as relevant even if the question differs
- Users phrase the same need in many ways; decide by meaning, not exact words
- Exclude unrelated entries
- Return at most 5 entries

RESPONSE FORMAT (MUST FOLLOW):
- Reply with JSON only, no text outside the JSON:
```json
{
  "has_results": true,
  "intro": "These answers may help...",
  "results": [
    {"faq_id": "faq_123", "question": "Full question text"}
  ]
}
```
- If the context is an empty list, reply exactly with:
```json
{
  "has_results": false,
  "intro": "Sorry, we couldn't find anything related. Please try asking another way.",
  "results": []
}
```

The knowledge base arrives as JSON: {"context": [{"faq_id": "...", "question": "...", "answer": "...", "synonym": "...", "score": 0.xx}]}"""

_JSON_FENCE = re.compile(r"```json\s*\n([\s\S]*?)\n```")
_ANY_FENCE = re.compile(r"```\s*\n?([\s\S]*?)\n?```")


def parse_selection(raw_content: str) -> AnswerSelection:
    """Parse the selector's JSON reply, tolerating markdown code fences.

    An unparseable reply yields an empty selection with an apology intro.
    """
    content = (raw_content or "").strip()
    match = _JSON_FENCE.search(content) or _ANY_FENCE.search(content)
    if match:
        content = match.group(1).strip()

    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(f"Failed to parse selector response: {e}")
        logger.debug(f"Raw selector content: {raw_content}")
        return AnswerSelection(intro=PARSE_ERROR_INTRO, decisions=[])

    if not isinstance(data, dict):
        logger.error("Selector response is not a JSON object")
        return AnswerSelection(intro=PARSE_ERROR_INTRO, decisions=[])

    intro = data.get("intro") or None
    results = data.get("results") or []

    if not data.get("has_results") or not results:
        return AnswerSelection(intro=intro or NO_RESULTS_INTRO, decisions=[])

    decisions = []
    for result in results:
        if not isinstance(result, dict):
            continue
        faq_id = str(result.get("faq_id") or "")
        if not faq_id:
            logger.warning("Skipping selector result without faq_id")
            continue
        decisions.append(SelectionDecision(
            faq_id=faq_id,
            include=bool(result.get("include", True)),
            question=result.get("question"),
        ))

    return AnswerSelection(intro=intro, decisions=decisions)


class LLMService:
    """Service for LLM-based answer selection over OpenAI-compatible REST APIs."""

    DEFAULT_AZURE_API_VERSION = "2024-02-15-preview"

    def __init__(self):
        self._provider = settings.LLM_PROVIDER
        self._api_url = settings.LLM_API_URL
        self._api_key = settings.LLM_API_KEY
        self._model = settings.LLM_MODEL
        self._api_version = settings.LLM_API_VERSION

    async def select_answers(
        self,
        query: str,
        candidates: List[Dict[str, Any]],
    ) -> AnswerSelection:
        """Ask the LLM which candidates answer the query.

        Args:
            query: User's question
            candidates: Hybrid search results (faq_id, question, answer, synonym, score)

        Raises:
            ValueError: if the query is empty or the LLM is not configured
            httpx.HTTPError: if the API call fails
        """
        query = (query or "").strip()
        if not query:
            raise ValueError("Query text must not be empty")

        messages = self._build_messages(query, candidates)
        content = await self._chat_completion(messages)

        logger.info(f"Selector answered for {len(candidates)} candidates")
        return parse_selection(content)

    def _build_messages(self, query: str, candidates: List[Dict[str, Any]]) -> List[Dict[str, str]]:
        """Build the chat messages with the candidates as JSON context."""
        ranked = sorted(candidates, key=lambda c: c.get("score", 0), reverse=True)
        context = {
            "context": [
                {
                    "faq_id": c["faq_id"],
                    "question": c.get("question", ""),
                    "answer": c.get("answer", ""),
                    "synonym": c.get("synonym") or "",
                    "score": round(c.get("score", 0), 4),
                }
                for c in ranked
            ]
        }
        user_message = (
            f"User question: {query}\n\n"
            f"[Knowledge base entries (JSON)]\n\n"
            f"{json.dumps(context, ensure_ascii=False, indent=2)}\n"
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_message},
        ]

    async def _chat_completion(self, messages: List[Dict[str, str]]) -> str:
        """Call the chat completions endpoint and return the message text."""
        if not self._api_key or not self._model:
            raise ValueError("LLM_API_KEY and LLM_MODEL must be configured")

        base_url = self._api_url.rstrip("/")
        headers = {"Content-Type": "application/json"}

        if self._provider == "azure-openai":
            api_version = self._api_version or self.DEFAULT_AZURE_API_VERSION
            url = f"{base_url}/openai/deployments/{self._model}/chat/completions?api-version={api_version}"
            headers["api-key"] = self._api_key
        else:
            url = f"{base_url}/chat/completions"
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {
            "model": self._model,
            "messages": messages,
            "temperature": settings.LLM_TEMPERATURE,
            "max_tokens": settings.LLM_MAX_TOKENS
        }

        async with httpx.AsyncClient(timeout=settings.LLM_TIMEOUT) as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()

        choices = data.get("choices") or []
        if not choices:
            raise ValueError("LLM response has no choices")
        return choices[0].get("message", {}).get("content") or ""


# Singleton instance
llm_service = LLMService()
