"""Optional relevance reranking via a remote rerank API, with graceful degradation."""

from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from knowledge_search.config import (
    get_rerank_api_key,
    get_rerank_model,
    get_rerank_timeout,
    get_rerank_url,
)
from knowledge_search.models.search import RerankConfig, RerankItem, SearchResult

logger = logging.getLogger(__name__)

# Providers have shipped both spellings across API versions
_ITEM_LIST_FIELDS = ("results", "data")
_SCORE_FIELDS = ("relevance_score", "score")


class MalformedRerankResponse(ValueError):
    """The rerank response body did not have a recognizable shape."""


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _coerce_score(raw: dict[str, Any]) -> float | None:
    """First finite numeric score field, or None."""
    for field_name in _SCORE_FIELDS:
        value = raw.get(field_name)
        if not _is_number(value):
            continue
        try:
            score = float(value)
        except OverflowError:
            continue
        if math.isfinite(score):
            return score
    return None


def _to_item(raw: object) -> RerankItem:
    if not isinstance(raw, dict):
        return RerankItem()
    item_id = raw.get("id")
    index = raw.get("index")
    return RerankItem(
        id=item_id if isinstance(item_id, str) else None,
        index=index if isinstance(index, int) and not isinstance(index, bool) else None,
        score=_coerce_score(raw),
    )


def parse_rerank_items(data: object) -> list[RerankItem]:
    """Parse a provider body into items, one per entry of its item list."""
    if not isinstance(data, dict):
        raise MalformedRerankResponse(f"expected a JSON object, got {type(data).__name__}")

    items: object = None
    for field_name in _ITEM_LIST_FIELDS:
        if field_name in data:
            items = data[field_name]
            break
    if not isinstance(items, list):
        raise MalformedRerankResponse("response has no item list")
    return [_to_item(raw) for raw in items]


def _resolve_position(item: RerankItem, candidates: list[SearchResult]) -> int | None:
    """Candidate position for an item: its index when in range, else its id."""
    if item.index is not None and 0 <= item.index < len(candidates):
        return item.index
    if item.id is not None:
        for position, candidate in enumerate(candidates):
            if candidate.id == item.id:
                return position
    return None


def normalize_rerank_response(
    data: object, candidates: list[SearchResult]
) -> dict[int, float]:
    """Reduce a provider response to ``{candidate_position: score}``.

    Items without a usable score get ``total_items - position`` so the
    provider's order is still honored. Items that match no candidate are
    ignored; the first score seen for a candidate wins.
    """
    items = parse_rerank_items(data)
    total = len(items)
    scores: dict[int, float] = {}
    for position, item in enumerate(items):
        candidate_position = _resolve_position(item, candidates)
        if candidate_position is None:
            continue
        score = item.score if item.score is not None else float(total - position)
        scores.setdefault(candidate_position, score)
    return scores


def apply_rerank_scores(
    results: list[SearchResult], scores: dict[int, float], top_n: int
) -> list[SearchResult]:
    """Order ``results`` by descending score; unscored items sink, in prior order."""
    order = sorted(
        range(len(results)), key=lambda i: scores.get(i, float("-inf")), reverse=True
    )
    return [results[i] for i in order[:top_n]]


class RerankClient:
    """Reorders ranked search results through a remote rerank endpoint.

    Reranking is best-effort: every failure path returns the input list
    unchanged.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        api_key: str | None = None,
        url: str | None = None,
    ) -> None:
        """Initialize with an optional HTTP client and credential overrides."""
        self._http = http_client
        self._api_key = api_key
        self._url = url

    @property
    def api_key(self) -> str | None:
        """The configured credential, if any."""
        return self._api_key or get_rerank_api_key()

    def is_configured(self) -> bool:
        """True when a reranking credential is available."""
        return self.api_key is not None

    async def rerank(
        self,
        query: str,
        results: list[SearchResult],
        config: RerankConfig | None = None,
    ) -> list[SearchResult]:
        """Rerank ``results`` against ``query``; return them unchanged on any failure."""
        config = config or RerankConfig()
        request_id = config.request_id

        if not config.enabled:
            return results
        if not query or not query.strip() or not results:
            return results

        api_key = self.api_key
        if api_key is None:
            logger.warning(
                "Skipping rerank because KS_RERANK_API_KEY is not configured [%s]", request_id
            )
            return results

        candidates = results[: config.max_candidates]
        top_n = min(config.top_n or len(results), len(candidates))
        payload = {
            "model": config.model or get_rerank_model(),
            "query": query,
            "documents": [
                {"id": c.id, "text": (c.content or "")[: config.max_content_length]}
                for c in candidates
            ],
            "top_n": top_n,
        }

        try:
            client = self._get_client()
            resp = await client.post(
                self._url or get_rerank_url(),
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=get_rerank_timeout(),
            )
        except Exception as exc:
            logger.warning("Rerank request failed: %s [%s]", exc, request_id)
            return results

        if not resp.is_success:
            logger.warning(
                "Rerank API returned HTTP %d %s [%s]",
                resp.status_code,
                resp.reason_phrase,
                request_id,
            )
            return results

        try:
            scores = normalize_rerank_response(resp.json(), candidates)
        except Exception as exc:
            logger.warning("Rerank API returned an unusable body: %s [%s]", exc, request_id)
            return results

        if not scores:
            logger.warning("Rerank API returned no usable items [%s]", request_id)
            return results

        logger.debug("Reranked %d candidate(s), keeping %d [%s]", len(scores), top_n, request_id)
        return apply_rerank_scores(results, scores, top_n)

    def _get_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def close(self) -> None:
        """Close the HTTP client if open."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
