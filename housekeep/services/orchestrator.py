"""
Parallel orchestrator for housekeep.

Fans work units out over a bounded thread pool and streams ProgressEvents
back to a single consumer in completion order. Workers only return
WorkResults; the generator returned by Orchestrator.run is the only thing
that ever produces events.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Generator, Iterable, Optional, TypeVar

from ..domain.event import ProgressEvent
from ..domain.work import WorkResult

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_WORKERS = 4


class RetryPolicy:
    """
    Bounded retry with a fixed backoff.

    Example:
        retry = RetryPolicy(attempts=2, backoff_seconds=5)
        output = retry.call(lambda: build.build(path), lambda out: not out.ok)
    """

    def __init__(
        self,
        attempts: int = 2,
        backoff_seconds: float = 5.0,
        sleep: Optional[Callable[[float], None]] = None
    ):
        """
        Initialize RetryPolicy.

        Args:
            attempts: Total number of attempts (1 = no retry)
            backoff_seconds: Pause between attempts
            sleep: Sleep function (injectable for tests)
        """
        self.attempts = max(1, attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep or time.sleep

    @classmethod
    def from_config(cls, config: dict) -> "RetryPolicy":
        build = config.get('build', {})
        return cls(
            attempts=int(build.get('retry_attempts', 2)),
            backoff_seconds=float(build.get('retry_backoff_seconds', 5)),
        )

    def call(self, fn: Callable[[], T], should_retry: Callable[[T], bool]) -> T:
        """
        Call `fn` until `should_retry` rejects its result or attempts run out.

        Returns:
            The result of the last attempt
        """
        result = fn()
        for attempt in range(2, self.attempts + 1):
            if not should_retry(result):
                break
            logger.debug(f"Retrying in {self.backoff_seconds}s (attempt {attempt}/{self.attempts})")
            self._sleep(self.backoff_seconds)
            result = fn()
        return result


def estimate_remaining(elapsed: float, completed: int, total: int) -> float:
    """
    Estimated seconds until the run finishes.

    The running average is taken over wall-clock time, elapsed / completed,
    not over the items' own durations. With N workers the mean item duration
    overstates the time per completion about N-fold, while wall-clock time
    per completion already reflects the pool's concurrency.
    """
    remaining = total - completed
    if completed <= 0 or remaining <= 0:
        return 0.0
    return elapsed / completed * remaining


def _item_path(item: Any) -> str:
    return str(getattr(item, 'repo_path', item))


class Orchestrator:
    """
    Runs independent work units concurrently.

    Example:
        orchestrator = Orchestrator(workers=4)
        for event in orchestrator.run(items, pipeline.process):
            print(event)

    Closing the generator early (for example when the consumer goes away)
    cancels every item that has not started; items already running are
    left to finish.
    """

    def __init__(
        self,
        workers: int = DEFAULT_WORKERS,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize Orchestrator.

        Args:
            workers: Maximum number of concurrent units
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.workers = max(1, workers)
        self._clock = clock or time.monotonic

    def _guarded(self, unit: Callable[[Any], WorkResult], item: Any) -> WorkResult:
        started = self._clock()
        try:
            return unit(item)
        except Exception as e:
            logger.exception(f"Unit failed for {_item_path(item)}")
            return WorkResult.failed(
                _item_path(item),
                f"Unexpected error: {e}",
                duration=self._clock() - started,
            )

    def run(
        self,
        items: Iterable[Any],
        unit: Callable[[Any], WorkResult]
    ) -> Generator[ProgressEvent, None, None]:
        """
        Run `unit` over every item.

        Yields:
            init(total), then item_result and update for each completion,
            then a single done(elapsed)
        """
        items = list(items)
        total = len(items)
        started = self._clock()

        yield ProgressEvent.init(total)

        if total:
            executor = ThreadPoolExecutor(max_workers=min(self.workers, total))
            try:
                futures = [executor.submit(self._guarded, unit, item) for item in items]
                completed = 0
                for future in as_completed(futures):
                    result = future.result()
                    completed += 1
                    yield ProgressEvent.item_result(result)
                    eta = estimate_remaining(self._clock() - started, completed, total)
                    yield ProgressEvent.update(completed, total, eta)
            finally:
                executor.shutdown(wait=False, cancel_futures=True)

        yield ProgressEvent.done(self._clock() - started)


def results_only(events: Iterable[ProgressEvent]) -> Generator[WorkResult, None, None]:
    """Filter a progress stream down to its WorkResults."""
    for event in events:
        if event.type == "item_result":
            yield event.result

