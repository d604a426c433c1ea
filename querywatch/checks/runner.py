"""Check runner: evaluates batches of results across worker threads.

Different checks are evaluated in parallel. Results for the same check are
evaluated one at a time, in submission order, so the previous-state
comparison and the timeout counter never race. Callers that load the check
from storage should use ``evaluate_stored`` so the read happens under the
same lock as the evaluation.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol

from .coordinator import CheckEvaluator, EvaluationOutcome
from .models import CheckRecord, QueryResult

logger = logging.getLogger(__name__)


class CheckSource(Protocol):
    def get(self, check_id: int) -> CheckRecord | None: ...


@dataclass
class BatchItem:
    check_id: int | None
    outcome: EvaluationOutcome | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class CheckRunner:
    """Serializes evaluations per check id; parallelizes across checks."""

    def __init__(self, evaluator: CheckEvaluator, max_workers: int = 4) -> None:
        self.evaluator = evaluator
        self._max_workers = max_workers
        # Entries are dropped once no thread holds or waits on them
        self._locks: dict[int | None, _LockEntry] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _locked(self, check_id: int | None) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.get(check_id)
            if entry is None:
                entry = self._locks[check_id] = _LockEntry()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[check_id]

    def evaluate(self, check: CheckRecord, result: QueryResult) -> EvaluationOutcome:
        """Evaluate one result while holding the check's lock."""
        with self._locked(check.id):
            return self.evaluator.evaluate(check, result)

    def evaluate_stored(
        self, source: CheckSource, check_id: int, result: QueryResult,
    ) -> tuple[CheckRecord, EvaluationOutcome] | None:
        """Load the check and evaluate it under one lock. Returns None if it does not exist."""
        with self._locked(check_id):
            check = source.get(check_id)
            if check is None:
                return None
            return check, self.evaluator.evaluate(check, result)

    def close(self) -> None:
        self.evaluator.close()

    def _run_group(self, pairs: list[tuple[int, CheckRecord, QueryResult]]) -> list[tuple[int, BatchItem]]:
        items = []
        for index, check, result in pairs:
            try:
                outcome = self.evaluate(check, result)
                items.append((index, BatchItem(check_id=check.id, outcome=outcome)))
            except Exception as e:
                logger.exception("Check evaluation error: %s", check.id)
                items.append((index, BatchItem(check_id=check.id, error=e)))
        return items

    def run_batch(self, pairs: Iterable[tuple[CheckRecord, QueryResult]]) -> list[BatchItem]:
        """Evaluate all pairs. Returns one item per pair, in input order."""
        groups: dict[int | None, list[tuple[int, CheckRecord, QueryResult]]] = {}
        count = 0
        for index, (check, result) in enumerate(pairs):
            groups.setdefault(check.id, []).append((index, check, result))
            count += 1

        if not groups:
            return []

        results: list[BatchItem | None] = [None] * count
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            for items in executor.map(self._run_group, groups.values()):
                for index, item in items:
                    results[index] = item

        logger.info(
            "Evaluated %d results across %d checks (%d failed)",
            count, len(groups), sum(1 for r in results if r is not None and not r.ok),
        )
        return [r for r in results if r is not None]
