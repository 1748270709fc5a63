"""Concurrent per-partition query execution with branch isolation."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from knowledge_search.config import get_branch_timeout
from knowledge_search.models.search import SearchResult

logger = logging.getLogger(__name__)

PartitionQuery = Callable[[str], Awaitable[list[SearchResult]]]


@dataclass(frozen=True)
class PartitionOutcome:
    """Result of one partition branch: its results, or the error that emptied it."""

    knowledge_base_id: str
    results: list[SearchResult] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        """True when the branch completed without error."""
        return self.error is None


async def _run_branch(kb_id: str, query: PartitionQuery, timeout: float) -> PartitionOutcome:
    try:
        results = await asyncio.wait_for(query(kb_id), timeout=timeout)
    except TimeoutError as exc:
        logger.warning("Partition %s query timed out after %.1fs", kb_id, timeout)
        return PartitionOutcome(kb_id, error=exc)
    except Exception as exc:
        logger.warning("Partition %s query failed: %s", kb_id, exc, exc_info=True)
        return PartitionOutcome(kb_id, error=exc)
    return PartitionOutcome(kb_id, results=list(results))


async def fan_out(
    knowledge_base_ids: list[str],
    query: PartitionQuery,
    timeout: float | None = None,
) -> list[PartitionOutcome]:
    """Run ``query`` once per partition concurrently and wait for every branch.

    A failing or timed-out branch contributes no results and never cancels
    its siblings. Outcomes are returned in partition order.
    """
    branch_timeout = timeout if timeout is not None else get_branch_timeout()
    outcomes = await asyncio.gather(
        *(_run_branch(kb_id, query, branch_timeout) for kb_id in knowledge_base_ids)
    )
    failed = [o.knowledge_base_id for o in outcomes if not o.ok]
    if failed:
        logger.warning(
            "%d of %d partition queries failed: %s",
            len(failed),
            len(outcomes),
            ", ".join(failed),
        )
    return list(outcomes)
