"""Shared concurrency helpers for strategy fan-out and bounded external calls.

Two patterns are exposed:

1. **fan_out** -- the fan-out / join-with-deadline pattern used by the
   orchestrator: start one task per named awaitable, wait for all of them up
   to an overall timeout, cancel whatever is still running and report
   successes, failures and timeouts separately.  Partial results are
   valuable, so nothing here raises because one branch failed.

2. **call_with_timeout** -- wrap a single external call (the scoring
   oracle) in its own deadline and translate ``asyncio.TimeoutError`` into
   :class:`~bookrec.utils.errors.UpstreamTimeout`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Generic, TypeVar

import structlog

from bookrec.utils.errors import UpstreamTimeout
from bookrec.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


@dataclass
class FanOutResult(Generic[_T]):
    """Outcome of a :func:`fan_out` call, keyed by branch name.

    ``results`` preserves the order in which branches were submitted.
    """

    results: dict[str, _T] = field(default_factory=dict)
    errors: dict[str, BaseException] = field(default_factory=dict)
    timed_out: list[str] = field(default_factory=list)

    @property
    def failed(self) -> list[str]:
        """Names of branches that raised or did not finish in time."""
        return [*self.errors.keys(), *self.timed_out]


async def fan_out(
    calls: dict[str, Awaitable[_T]],
    timeout: float,
    logger: structlog.BoundLogger | None = None,
) -> FanOutResult[_T]:
    """Run named awaitables concurrently and join them with a deadline.

    Parameters
    ----------
    calls:
        Branch name -> awaitable.  Each awaitable is scheduled as its own task.
    timeout:
        Overall deadline in seconds for the whole group.
    logger:
        Optional structured logger for failures.

    Returns
    -------
    FanOutResult
        Successful results, exceptions raised by branches, and the names of
        branches abandoned at the deadline.
    """
    if logger is None:
        logger = _logger

    outcome: FanOutResult[_T] = FanOutResult()
    if not calls:
        return outcome

    tasks = {name: asyncio.ensure_future(aw) for name, aw in calls.items()}

    try:
        _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
    except asyncio.CancelledError:
        # The caller went away: abandon every branch of this run.
        for task in tasks.values():
            task.cancel()
        raise

    for task in pending:
        task.cancel()

    for name, task in tasks.items():
        if task in pending:
            outcome.timed_out.append(name)
            logger.warning("fan_out_branch_timeout", branch=name, timeout=timeout)
            continue
        exc = task.exception()
        if exc is not None:
            outcome.errors[name] = exc
            logger.warning(
                "fan_out_branch_failed",
                branch=name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        else:
            outcome.results[name] = task.result()

    return outcome


async def call_with_timeout(
    awaitable: Awaitable[_T],
    timeout: float,
    provider_name: str | None = None,
) -> _T:
    """Await *awaitable* with its own deadline.

    Raises
    ------
    UpstreamTimeout
        If the call does not finish within *timeout* seconds.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise UpstreamTimeout(
            message=f"call exceeded {timeout:.3f}s budget",
            provider_name=provider_name,
        ) from exc
