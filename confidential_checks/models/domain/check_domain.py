"""
Domain models for confidential background checks.

CheckRecord mirrors one record of the ledger. The status of a record is never
stored: it is derived from `is_verified` and `clear_score` every time it is
read, so it can never go stale.
"""

import hashlib
import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, computed_field, model_validator

from confidential_checks.config import settings

CheckStatus = Literal["pending", "passed", "failed"]
StatusPhase = Literal["pending", "success", "error"]

CANDIDATE_ID_PREFIX = "check-"
_CANDIDATE_SUFFIX_RE = re.compile(r"^check-(\d+)$")


def resolve_record_id(candidate_id: str, ledger_id: int | None = None) -> int:
    """
    Resolve the stable numeric id of a record.

    Prefers the id assigned by the ledger, then the numeric suffix of a
    ``check-<n>`` candidate id, then a digest of the candidate id. The result
    only depends on ledger data, so it is identical across reloads.
    """
    if ledger_id is not None:
        return int(ledger_id)

    match = _CANDIDATE_SUFFIX_RE.match(candidate_id)
    if match:
        return int(match.group(1))

    digest = hashlib.blake2b(candidate_id.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") & 0x7FFF_FFFF_FFFF_FFFF


def derive_status(
    is_verified: bool, clear_score: int | None, threshold: int | None = None
) -> CheckStatus:
    """pending until verified; passed at or above the threshold, else failed."""
    if not is_verified or clear_score is None:
        return "pending"
    limit = settings.PASS_THRESHOLD if threshold is None else threshold
    return "passed" if clear_score >= limit else "failed"


class CheckRecord(BaseModel):
    """A single background check as currently stored on the ledger."""

    model_config = ConfigDict(frozen=True)

    id: int
    candidate_id: str
    name: str
    position: str
    creator: str
    timestamp: int
    encrypted_score_handle: str
    public_value1: int = 0
    public_value2: int = 0
    is_verified: bool = False
    clear_score: int | None = None

    @model_validator(mode="after")
    def _clear_score_iff_verified(self) -> "CheckRecord":
        if self.is_verified and self.clear_score is None:
            raise ValueError("verified record must carry a clear score")
        if not self.is_verified and self.clear_score is not None:
            raise ValueError("clear score must be absent until verified")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> CheckStatus:
        return derive_status(self.is_verified, self.clear_score)


class CheckStats(BaseModel):
    """Aggregate snapshot over a record set."""

    total_checks: int = 0
    passed: int = 0
    failed: int = 0
    pending: int = 0
    avg_score: float = 0.0


class CheckSnapshot(BaseModel):
    """Result of one full refresh cycle."""

    records: list[CheckRecord]
    stats: CheckStats
    user_history: list[CheckRecord] = []
    skipped: list[str] = []


class TransactionStatus(BaseModel):
    """Current long-running operation progress, as shown to the user."""

    model_config = ConfigDict(frozen=True)

    visible: bool = False
    phase: StatusPhase = "pending"
    message: str = ""
    sequence: int = 0


class Actor(BaseModel):
    """The account on whose behalf an operation runs."""

    address: str | None = None
    connected: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.connected and bool(self.address)
