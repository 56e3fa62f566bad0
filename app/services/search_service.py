"""Elasticsearch hybrid search over a chatbot's FAQ index using the REST API."""

import httpx
from typing import List, Dict, Any, Optional
import logging
import time

from app.core.config import settings

logger = logging.getLogger(__name__)

# Rank assigned to a hit missing from one of the two result lists
MISSING_RANK = 9999

SOURCE_FIELDS = ["faq_id", "question", "answer", "synonym", "chatbot_id"]


def fuse_rankings(
    bm25_hits: List[Dict[str, Any]],
    knn_hits: List[Dict[str, Any]],
    top_k: int,
    bm25_weight: float,
    knn_weight: float,
    sim_threshold: float,
    rank_constant: int,
) -> List[Dict[str, Any]]:
    """Merge BM25 and kNN hit lists with weighted reciprocal rank fusion.

    kNN scores are cosine similarity shifted by +1.0, so the threshold is
    shifted the same way before filtering.
    """
    bm25_rank: Dict[str, int] = {}
    for index, hit in enumerate(bm25_hits):
        bm25_rank.setdefault(hit["_source"]["faq_id"], index + 1)

    adjusted_threshold = sim_threshold + 1.0
    knn_rank: Dict[str, int] = {}
    rank = 1
    for hit in knn_hits:
        if (hit.get("_score") or 0) < adjusted_threshold:
            continue
        faq_id = hit["_source"]["faq_id"]
        if faq_id in knn_rank:
            continue
        knn_rank[faq_id] = rank
        rank += 1

    def rrf(r: int) -> float:
        return 1.0 / (rank_constant + r)

    scores = {}
    for faq_id in list(bm25_rank) + [fid for fid in knn_rank if fid not in bm25_rank]:
        r1 = bm25_rank.get(faq_id, MISSING_RANK)
        r2 = knn_rank.get(faq_id, MISSING_RANK)
        scores[faq_id] = rrf(r1) * bm25_weight + rrf(r2) * knn_weight

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)[:top_k]

    sources: Dict[str, Dict[str, Any]] = {}
    for hit in bm25_hits + knn_hits:
        sources.setdefault(hit["_source"]["faq_id"], hit["_source"])

    results = []
    for faq_id, score in ranked:
        source = sources[faq_id]
        results.append({
            "faq_id": faq_id,
            "question": source.get("question", ""),
            "answer": source.get("answer", ""),
            "synonym": source.get("synonym") or "",
            "chatbot_id": source.get("chatbot_id"),
            "score": score,
            "metadata": {
                "bm25_rank": bm25_rank.get(faq_id),
                "knn_rank": knn_rank.get(faq_id),
                "rank_constant": rank_constant,
                "search_type": "hybrid",
            },
        })
    return results


class SearchService:
    """Service for hybrid (BM25 + vector) FAQ search in Elasticsearch."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        self._base_url = (base_url or settings.ELASTICSEARCH_URL).rstrip("/")
        self._api_key = api_key or settings.ELASTICSEARCH_API_KEY

    def get_index_name(self, chatbot_id: str) -> str:
        return f"{settings.ELASTICSEARCH_INDEX_PREFIX}{chatbot_id}"

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for API requests."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json"
        }
        if self._api_key:
            headers["Authorization"] = f"ApiKey {self._api_key}"
        return headers

    async def _make_request(
        self,
        client: httpx.AsyncClient,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
    ) -> httpx.Response:
        """Make HTTP request to the Elasticsearch REST API."""
        url = f"{self._base_url}{endpoint}"

        if method == "POST":
            response = await client.post(url, headers=self._get_headers(), json=data)
        elif method == "GET":
            response = await client.get(url, headers=self._get_headers())
        elif method == "HEAD":
            response = await client.head(url, headers=self._get_headers())
        else:
            raise ValueError(f"Unsupported method: {method}")

        if method != "HEAD":
            response.raise_for_status()
        return response

    async def hybrid_search(
        self,
        chatbot_id: str,
        query: str,
        vector: List[float],
        top_k: int = 5,
        bm25_weight: float = 0.3,
        knn_weight: float = 0.7,
        sim_threshold: float = 0.45,
        rank_constant: int = 60,
    ) -> List[Dict[str, Any]]:
        """Search active FAQs of a chatbot with BM25 and vector similarity fused by RRF.

        Returns an empty list when the chatbot has no index yet. Transport and
        HTTP errors are raised to the caller.
        """
        index_name = self.get_index_name(chatbot_id)
        start_time = time.time()

        async with httpx.AsyncClient(timeout=settings.ELASTICSEARCH_TIMEOUT) as client:
            exists = await self._make_request(client, "HEAD", f"/{index_name}")
            if exists.status_code == 404:
                logger.warning(f"Index {index_name} does not exist, returning no results")
                return []
            exists.raise_for_status()

            active_filter = {"term": {"status": "active"}}

            bm25_query = {
                "size": top_k * 2,
                "_source": SOURCE_FIELDS,
                "query": {
                    "bool": {
                        "must": [
                            active_filter,
                            {"match": {"synonym": {"query": query}}},
                        ]
                    }
                },
            }
            bm25_response = await self._make_request(client, "POST", f"/{index_name}/_search", bm25_query)
            bm25_hits = bm25_response.json().get("hits", {}).get("hits", [])

            knn_query = {
                "size": top_k * 2,
                "_source": SOURCE_FIELDS,
                "query": {
                    "bool": {
                        "must": [active_filter],
                        "should": [
                            {
                                "script_score": {
                                    "query": {"match_all": {}},
                                    "script": {
                                        # cosineSimilarity is in [-1, 1]; shift to [0, 2]
                                        "source": "cosineSimilarity(params.query_vector, 'dense_vector') + 1.0",
                                        "params": {"query_vector": vector},
                                    },
                                }
                            }
                        ],
                    }
                },
            }
            knn_response = await self._make_request(client, "POST", f"/{index_name}/_search", knn_query)
            knn_hits = knn_response.json().get("hits", {}).get("hits", [])

        results = fuse_rankings(
            bm25_hits,
            knn_hits,
            top_k=top_k,
            bm25_weight=bm25_weight,
            knn_weight=knn_weight,
            sim_threshold=sim_threshold,
            rank_constant=rank_constant,
        )

        duration = int((time.time() - start_time) * 1000)
        logger.info(
            f"Hybrid search on {index_name}: {len(bm25_hits)} BM25 hits, "
            f"{len(knn_hits)} kNN hits, {len(results)} fused results in {duration}ms"
        )
        return results

    async def health_check(self) -> bool:
        """Check if the Elasticsearch cluster is reachable and not red."""
        try:
            async with httpx.AsyncClient(timeout=settings.ELASTICSEARCH_TIMEOUT) as client:
                response = await self._make_request(client, "GET", "/_cluster/health")
            return response.json().get("status") in ("green", "yellow")
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False


# Singleton instance
search_service = SearchService()
