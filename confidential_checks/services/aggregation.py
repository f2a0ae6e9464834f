"""
Aggregation over the current record set.

Pure functions, no I/O. The average score divides by the total number of
records: unverified records count as 0 and pull the average down.
"""

from collections import Counter
from collections.abc import Iterable

from confidential_checks.models.domain.check_domain import CheckRecord, CheckStats

STATUS_FILTER_ALL = "all"


def compute_stats(records: Iterable[CheckRecord]) -> CheckStats:
    records = list(records)
    total = len(records)
    if total == 0:
        return CheckStats()

    counts = Counter(record.status for record in records)
    score_sum = sum(record.clear_score or 0 for record in records if record.is_verified)

    return CheckStats(
        total_checks=total,
        passed=counts["passed"],
        failed=counts["failed"],
        pending=counts["pending"],
        avg_score=score_sum / total,
    )


def filter_checks(
    records: Iterable[CheckRecord], search: str = "", status: str = STATUS_FILTER_ALL
) -> list[CheckRecord]:
    """Case-insensitive search over name and position, plus a status filter."""
    term = (search or "").strip().lower()
    wanted = (status or STATUS_FILTER_ALL).lower()

    result = []
    for record in records:
        if term and term not in record.name.lower() and term not in record.position.lower():
            continue
        if wanted != STATUS_FILTER_ALL and record.status != wanted:
            continue
        result.append(record)
    return result


def records_by_creator(records: Iterable[CheckRecord], address: str | None) -> list[CheckRecord]:
    """Records created by `address`, newest first."""
    if not address:
        return []
    owner = address.lower()
    mine = [record for record in records if record.creator.lower() == owner]
    return sorted(mine, key=lambda record: record.timestamp, reverse=True)
