"""
Read-through cache over the last refresh of the record set.

Keyed by record id and invalidated wholesale by every mutating operation.
Each invalidation bumps a generation counter; a refresh that started before
an invalidation cannot repopulate the cache with its (now stale) snapshot.
"""

from confidential_checks.infrastructure.observability.logging import get_logger
from confidential_checks.models.domain.check_domain import CheckRecord

logger = get_logger(__name__)


class RecordCache:
    def __init__(self):
        self._records: list[CheckRecord] = []
        self._by_id: dict[int, CheckRecord] = {}
        self._loaded = False
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def records(self) -> list[CheckRecord]:
        return list(self._records)

    def get(self, record_id: int) -> CheckRecord | None:
        return self._by_id.get(record_id)

    def find_by_candidate(self, candidate_id: str) -> CheckRecord | None:
        return next((r for r in self._records if r.candidate_id == candidate_id), None)

    def replace(self, records: list[CheckRecord], generation: int) -> bool:
        """Install a refresh snapshot taken at `generation`. Returns False if it was stale."""
        if generation != self._generation:
            logger.debug(
                "Discarding stale snapshot", snapshot_generation=generation, current=self._generation
            )
            return False

        by_id: dict[int, CheckRecord] = {}
        for record in records:
            if record.id in by_id:
                logger.warning(
                    "Duplicate record id in snapshot",
                    record_id=record.id,
                    candidate_id=record.candidate_id,
                )
            by_id[record.id] = record

        self._records = list(records)
        self._by_id = by_id
        self._loaded = True
        return True

    def invalidate(self) -> None:
        self._records = []
        self._by_id = {}
        self._loaded = False
        self._generation += 1
