"""
Bounded worker pool for per-file sync tasks.

Each task returns an object with an `errors` list. The pool never lets one
task's failure reach its siblings: `wait()` gathers every task's own errors,
plus any exception that escaped a task, into one aggregate list.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from tqdm import tqdm

from .exceptions import CollectorError


@dataclass
class PoolReport:
    outcomes: List[Any] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)


class WorkerPool:
    def __init__(self, max_workers: int, desc: str = "Syncing", show_progress: bool = False):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self.desc = desc
        self.show_progress = show_progress
        # ThreadPoolExecutor never runs more than max_workers tasks at once
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="collector")
        self._futures: Dict[Future, str] = {}

    def submit(self, label: str, fn: Callable[..., Any], *args) -> Future:
        """Queues one independent unit of work. `label` identifies it in errors."""
        future = self._executor.submit(fn, *args)
        self._futures[future] = label
        return future

    @property
    def pending(self) -> int:
        return len(self._futures)

    def wait(self) -> PoolReport:
        """
        Blocks until every submitted task has finished and returns all
        outcomes with the aggregate error list. The pool can be reused.
        """
        report = PoolReport()
        futures = self._futures
        self._futures = {}

        for future in tqdm(as_completed(futures), total=len(futures), desc=self.desc,
                           disable=not self.show_progress):
            label = futures[future]
            try:
                outcome = future.result()
            except Exception as e:
                logging.error(f"Task for {label} failed: {e}")
                if not isinstance(e, CollectorError):
                    wrapped = CollectorError(f"task for '{label}' failed: {e}", path=label)
                    wrapped.__cause__ = e
                    e = wrapped
                report.errors.append(e)
                continue

            report.outcomes.append(outcome)
            report.errors.extend(getattr(outcome, "errors", None) or [])

        return report

    def shutdown(self):
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
