from confidential_checks.models.domain.check_domain import CheckRecord
from confidential_checks.services.ledger.record_cache import RecordCache


def _record(candidate_id: str, record_id: int) -> CheckRecord:
    return CheckRecord(
        id=record_id,
        candidate_id=candidate_id,
        name="Jane Doe",
        position="Engineer",
        creator="0xalice",
        timestamp=1_700_000_000,
        encrypted_score_handle="0xhandle",
    )


def test_replace_populates_lookups():
    cache = RecordCache()

    assert cache.replace([_record("check-1", 1), _record("check-2", 2)], cache.generation)

    assert cache.is_loaded
    assert cache.get(2).candidate_id == "check-2"
    assert cache.find_by_candidate("check-1").id == 1


def test_snapshot_started_before_invalidation_is_discarded():
    cache = RecordCache()
    generation = cache.generation

    cache.invalidate()

    assert cache.replace([_record("check-1", 1)], generation) is False
    assert cache.is_loaded is False
    assert cache.records() == []


def test_invalidate_clears_records():
    cache = RecordCache()
    cache.replace([_record("check-1", 1)], cache.generation)

    cache.invalidate()

    assert cache.get(1) is None
    assert cache.find_by_candidate("check-1") is None
