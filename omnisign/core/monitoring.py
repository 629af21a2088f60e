"""
Completion Monitor

Polls the execution status service for a quote until a terminal status is
observed or the deadline passes.

States:
    POLLING   -> COMPLETED  status COMPLETED
    POLLING   -> FAILED     status FAILED / REFUNDED, timeout, or cancellation

Query errors are transient: they are logged and polling continues. The
deadline is checked between polls; an in-flight status request is allowed to
finish, the loop simply schedules no further polls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Set, Union

from pydantic import BaseModel

from ..config import settings
from ..logging_config import quote_context
from .errors import (
    MonitoringCancelled,
    MonitoringError,
    MonitoringRetriesExhausted,
    MonitoringTimeout,
    TerminalExecutionFailure,
    TransientQueryError,
)
from .operations import OperationStatus, Quote


logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
StatusCallback = Callable[[Optional[OperationStatus], Dict[str, Any]], None]


class StatusSource(Protocol):
    """Anything that can report a quote's execution status."""

    async def fetch_execution_status(self, quote_id: str) -> Union[Dict[str, Any], BaseModel]:
        ...


class MonitorState(str, Enum):
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StatusObservation:
    """One poll of the status service."""
    poll_number: int
    elapsed_s: float
    status: Optional[OperationStatus] = None
    raw_status: Optional[str] = None
    error: Optional[str] = None


def _quote_id(quote: Union[str, Quote]) -> str:
    return quote.id if isinstance(quote, Quote) else quote


def _as_dict(response: Union[Dict[str, Any], BaseModel]) -> Dict[str, Any]:
    if isinstance(response, BaseModel):
        return response.model_dump(by_alias=True, mode="json")
    return response


def parse_status(response: Dict[str, Any]) -> Optional[OperationStatus]:
    """Map a status response onto OperationStatus; unknown values map to None."""
    raw = response.get("status")
    if raw is None:
        return None
    if isinstance(raw, OperationStatus):
        return raw
    try:
        return OperationStatus(str(raw).upper())
    except ValueError:
        return None


class CompletionMonitor:
    """
    Poll-based completion state machine for a single quote.

    Time is read from ``clock`` and waits go through ``sleep`` so tests can
    drive the monitor with simulated time.
    """

    TRANSITIONS: Dict[MonitorState, Set[MonitorState]] = {
        MonitorState.POLLING: {MonitorState.COMPLETED, MonitorState.FAILED},
        MonitorState.COMPLETED: set(),
        MonitorState.FAILED: set(),
    }

    def __init__(
        self,
        status_source: StatusSource,
        quote: Union[str, Quote],
        *,
        interval_s: Optional[float] = None,
        timeout_s: Optional[float] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        cancel_event: Optional[asyncio.Event] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self.status_source = status_source
        self.quote_id = _quote_id(quote)
        self.interval_s = settings.monitor_poll_interval_seconds if interval_s is None else interval_s
        self.timeout_s = settings.monitor_timeout_seconds if timeout_s is None else timeout_s
        if self.interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")

        self._clock = clock
        self._sleep = sleep
        self._cancel_event = cancel_event
        self._on_status = on_status

        self._state = MonitorState.POLLING
        self.history: List[StatusObservation] = []
        self.error: Optional[MonitoringError] = None
        self.last_response: Optional[Dict[str, Any]] = None

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return not self.TRANSITIONS[self._state]

    @property
    def poll_count(self) -> int:
        return len(self.history)

    @property
    def last_status(self) -> Optional[OperationStatus]:
        for observation in reversed(self.history):
            if observation.status is not None:
                return observation.status
        return None

    def _transition(self, to_state: MonitorState) -> None:
        if to_state not in self.TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid monitor transition: {self._state.value} -> {to_state.value}")
        logger.debug("Monitor %s: %s -> %s", self.quote_id, self._state.value, to_state.value)
        self._state = to_state

    def _fail(self, error: MonitoringError) -> MonitoringError:
        self.error = error
        self._transition(MonitorState.FAILED)
        return error

    def _is_cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    async def _wait(self, seconds: float) -> None:
        if self._cancel_event is None:
            await self._sleep(seconds)
            return

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        cancelled = asyncio.ensure_future(self._cancel_event.wait())
        done, pending = await asyncio.wait({sleeper, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def _poll(self, started_at: float) -> Optional[Dict[str, Any]]:
        poll_number = self.poll_count + 1
        try:
            response = _as_dict(await self.status_source.fetch_execution_status(self.quote_id))
        except Exception as exc:
            transient = TransientQueryError(self.quote_id, exc)
            self.history.append(
                StatusObservation(
                    poll_number=poll_number,
                    elapsed_s=self._clock() - started_at,
                    error=str(exc),
                )
            )
            logger.warning("Error checking transaction status: %s", transient)
            return None

        status = parse_status(response)
        self.last_response = response
        self.history.append(
            StatusObservation(
                poll_number=poll_number,
                elapsed_s=self._clock() - started_at,
                status=status,
                raw_status=response.get("status"),
            )
        )
        if status is None:
            logger.warning("Unrecognized status for %s: %r", self.quote_id, response.get("status"))
        else:
            logger.info("Quote %s status: %s", self.quote_id, status.value)

        if self._on_status is not None:
            self._on_status(status, response)
        return response

    async def run(self) -> Dict[str, Any]:
        """
        Poll until a terminal status or the deadline.

        Returns:
            The final status response (status COMPLETED)

        Raises:
            TerminalExecutionFailure: status FAILED or REFUNDED was reported
            MonitoringTimeout: no terminal status before the deadline
            MonitoringCancelled: the cancel event was set
        """
        if self._state is not MonitorState.POLLING:
            raise RuntimeError(f"Monitor for {self.quote_id} already finished ({self._state.value})")

        with quote_context(self.quote_id):
            return await self._run()

    async def _run(self) -> Dict[str, Any]:
        logger.info("Monitoring transaction completion for quote %s", self.quote_id)
        started_at = self._clock()

        while True:
            if self._is_cancelled():
                raise self._fail(MonitoringCancelled(self.quote_id))

            response = await self._poll(started_at)
            status = parse_status(response) if response is not None else None

            if status is OperationStatus.COMPLETED:
                self._transition(MonitorState.COMPLETED)
                logger.info("Transaction completed successfully for quote %s", self.quote_id)
                return response

            if status is not None and status.is_failure:
                raise self._fail(
                    TerminalExecutionFailure(
                        self.quote_id,
                        status.value,
                        fail_reason=response.get("failReason"),
                    )
                )

            elapsed = self._clock() - started_at
            if elapsed >= self.timeout_s:
                raise self._fail(
                    MonitoringTimeout(
                        self.quote_id,
                        self.timeout_s,
                        last_status=self.last_status.value if self.last_status else None,
                    )
                )

            await self._wait(min(self.interval_s, self.timeout_s - elapsed))

            if self._clock() - started_at >= self.timeout_s:
                raise self._fail(
                    MonitoringTimeout(
                        self.quote_id,
                        self.timeout_s,
                        last_status=self.last_status.value if self.last_status else None,
                    )
                )


async def monitor_transaction_completion(
    status_source: StatusSource,
    quote: Union[str, Quote],
    timeout_s: Optional[float] = None,
    interval_s: Optional[float] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """Monitor a single quote until it completes; see CompletionMonitor.run."""
    monitor = CompletionMonitor(
        status_source,
        quote,
        interval_s=interval_s,
        timeout_s=timeout_s,
        **kwargs,
    )
    return await monitor.run()


@dataclass
class MultiMonitorResult:
    """Outcome of monitoring several quotes concurrently."""
    responses: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    errors: Dict[str, MonitoringError] = field(default_factory=dict)

    @property
    def all_completed(self) -> bool:
        return not self.errors


async def monitor_many(
    status_source: StatusSource,
    quotes: Sequence[Union[str, Quote]],
    timeout_s: Optional[float] = None,
    interval_s: Optional[float] = None,
    **kwargs: Any,
) -> MultiMonitorResult:
    """
    Monitor several quotes concurrently.

    Each quote gets its own monitor. Resolves once every monitor has reached a
    terminal state; a failure does not cancel its siblings. If any monitor
    failed, the first failure (in input order) is raised after all finish.
    """
    quote_ids = [_quote_id(quote) for quote in quotes]
    logger.info("Monitoring %d transactions", len(quote_ids))

    monitors = [
        CompletionMonitor(
            status_source,
            quote_id,
            interval_s=interval_s,
            timeout_s=timeout_s,
            **kwargs,
        )
        for quote_id in quote_ids
    ]
    outcomes = await asyncio.gather(*(monitor.run() for monitor in monitors), return_exceptions=True)

    result = MultiMonitorResult()
    for index, (quote_id, outcome) in enumerate(zip(quote_ids, outcomes), start=1):
        if isinstance(outcome, MonitoringError):
            logger.error("Transaction %d (%s) failed: %s", index, quote_id, outcome)
            result.errors[quote_id] = outcome
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            logger.info("Transaction %d (%s) completed", index, quote_id)
            result.responses[quote_id] = outcome

    if result.errors:
        raise next(iter(result.errors.values()))

    logger.info("All %d transactions completed successfully", len(quote_ids))
    return result


async def get_transaction_status(status_source: StatusSource, quote: Union[str, Quote]) -> Dict[str, Any]:
    """Fetch the current execution status once, without monitoring."""
    quote_id = _quote_id(quote)
    try:
        response = _as_dict(await status_source.fetch_execution_status(quote_id))
    except Exception:
        logger.error("Failed to get status for transaction %s", quote_id, exc_info=True)
        raise
    logger.info("Transaction %s status: %s", quote_id, response.get("status"))
    return response


async def wait_for_transaction(
    status_source: StatusSource,
    quote: Union[str, Quote],
    *,
    timeout_s: Optional[float] = None,
    interval_s: Optional[float] = None,
    max_retries: Optional[int] = None,
    on_status: Optional[StatusCallback] = None,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> Dict[str, Any]:
    """
    Monitor with retries: a timed-out monitoring attempt is restarted up to
    ``max_retries`` times. A reported FAILED/REFUNDED status is never retried.
    """
    quote_id = _quote_id(quote)
    max_retries = settings.monitor_max_retries if max_retries is None else max_retries
    interval = settings.monitor_poll_interval_seconds if interval_s is None else interval_s
    last_error: Optional[MonitoringError] = None

    for attempt in range(1, max_retries + 1):
        monitor = CompletionMonitor(
            status_source,
            quote_id,
            interval_s=interval,
            timeout_s=timeout_s,
            clock=clock,
            sleep=sleep,
            on_status=on_status,
        )
        try:
            return await monitor.run()
        except TerminalExecutionFailure:
            raise
        except MonitoringError as exc:
            last_error = exc
            logger.warning("Monitoring attempt %d for %s failed: %s", attempt, quote_id, exc)

        if attempt < max_retries:
            await sleep(interval)

    raise MonitoringRetriesExhausted(quote_id, max_retries, last_error=last_error)
