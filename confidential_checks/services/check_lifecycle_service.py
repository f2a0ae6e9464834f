"""
Check lifecycle service.

Orchestrates the two phases of a confidential background check:

1. create  - encrypt the risk score, submit the record, wait for the ledger to
             confirm it, refresh.
2. decrypt - exchange the encrypted handle and a decryption proof for a
             ledger-accepted clear value, exactly once per record.

The ledger is the single source of truth. Every decision re-reads from the
store; the cache only serves listings and is invalidated by every mutation.
Progress is published on the transaction status channel at every phase
transition.
"""

import time
from collections import Counter
from contextlib import contextmanager

from confidential_checks.infrastructure.audit import audit_logger
from confidential_checks.infrastructure.observability.logging import get_logger
from confidential_checks.models.domain.check_domain import (
    CANDIDATE_ID_PREFIX,
    Actor,
    CheckRecord,
    CheckSnapshot,
    CheckStats,
)
from confidential_checks.services.aggregation import (
    STATUS_FILTER_ALL,
    compute_stats,
    filter_checks,
    records_by_creator,
)
from confidential_checks.services.codec.confidential_codec import ConfidentialCodec
from confidential_checks.services.errors import (
    AlreadyVerified,
    CheckServiceError,
    DecryptionFailure,
    NotAuthenticated,
    NotFound,
    RejectedByUser,
    SubmissionFailure,
)
from confidential_checks.services.ledger.record_cache import RecordCache
from confidential_checks.services.ledger.record_store import RecordStoreClient
from confidential_checks.services.transaction_status import (
    TransactionStatusChannel,
    transaction_status,
)

logger = get_logger(__name__)

# User-facing status messages
MSG_CONNECT_FIRST = "Please connect wallet first"
MSG_CREATING = "Creating background check with encryption..."
MSG_CONFIRMING = "Waiting for transaction confirmation..."
MSG_CREATED = "Background check created successfully!"
MSG_REJECTED = "Transaction rejected by user"
MSG_VERIFYING = "Verifying decryption on-chain..."
MSG_DECRYPTED = "Risk score decrypted and verified!"
MSG_ALREADY_VERIFIED = "Data already verified on-chain"
MSG_ALREADY_VERIFIED_RACE = "Data is already verified on-chain"
MSG_LOAD_FAILED = "Failed to load data"


class CandidateIdGenerator:
    """
    Issues ``check-<n>`` candidate ids.

    `n` is the current time in milliseconds, bumped past the last issued value
    so two records created within the same millisecond never collide.
    """

    def __init__(self, clock=None):
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._last = 0

    def next_id(self) -> str:
        value = max(int(self._clock()), self._last + 1)
        self._last = value
        return f"{CANDIDATE_ID_PREFIX}{value}"


class CheckLifecycleManager:
    """Create, verify and refresh background check records."""

    def __init__(
        self,
        store: RecordStoreClient,
        codec: ConfidentialCodec,
        status: TransactionStatusChannel | None = None,
        cache: RecordCache | None = None,
        id_generator: CandidateIdGenerator | None = None,
    ):
        self.store = store
        self.codec = codec
        self.status = status if status is not None else transaction_status
        self.cache = cache if cache is not None else RecordCache()
        self.id_generator = id_generator or CandidateIdGenerator()
        self._in_flight: Counter[str] = Counter()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _track(self, operation: str):
        self._in_flight[operation] += 1
        try:
            yield
        finally:
            self._in_flight[operation] -= 1

    def activity(self) -> dict[str, bool]:
        """Which operations are currently running (presentation disables their triggers)."""
        return {
            "creating": self._in_flight["create"] > 0,
            "decrypting": self._in_flight["decrypt"] > 0,
            "refreshing": self._in_flight["refresh"] > 0,
        }

    def _require_actor(self, actor: Actor | None, operation: str) -> str:
        if actor is None or not actor.is_authenticated:
            logger.warning("Mutating operation without connected account", operation=operation)
            self.status.error(MSG_CONNECT_FIRST)
            raise NotAuthenticated(MSG_CONNECT_FIRST)
        return actor.address

    async def _refresh_after_mutation(self, actor: Actor | None) -> None:
        """Refresh once a mutation is confirmed; a failure here does not undo the mutation."""
        self.cache.invalidate()
        try:
            await self._load_snapshot(actor)
        except CheckServiceError as e:
            logger.warning(
                "Refresh after mutation failed; cache left invalidated",
                error=e.message,
                error_type=type(e).__name__,
            )

    # ------------------------------------------------------------------
    # Refresh / reads
    # ------------------------------------------------------------------

    async def _load_snapshot(self, actor: Actor | None) -> CheckSnapshot:
        generation = self.cache.generation
        ids = await self.store.get_all_ids()

        records: list[CheckRecord] = []
        skipped: list[str] = []
        for candidate_id in ids:
            try:
                records.append(await self.store.get_record(candidate_id))
            except CheckServiceError as e:
                logger.error(
                    "Error loading record",
                    candidate_id=candidate_id,
                    error=e.message,
                    error_type=type(e).__name__,
                )
                skipped.append(candidate_id)

        self.cache.replace(records, generation)

        logger.info("Records refreshed", record_count=len(records), skipped_count=len(skipped))
        return CheckSnapshot(
            records=records,
            stats=compute_stats(records),
            user_history=records_by_creator(records, actor.address if actor else None),
            skipped=skipped,
        )

    async def refresh(self, actor: Actor | None = None) -> CheckSnapshot:
        """
        Re-read every record from the ledger.

        A record that fails to load is logged and skipped. Failing to list the
        ids aborts the refresh with an error status.
        """
        with self._track("refresh"):
            try:
                return await self._load_snapshot(actor)
            except CheckServiceError as e:
                logger.error("Failed to load data", error=e.message, error_type=type(e).__name__)
                self.status.error(MSG_LOAD_FAILED)
                raise

    async def records(self) -> list[CheckRecord]:
        if not self.cache.is_loaded:
            await self.refresh()
        return self.cache.records()

    async def list_checks(self, search: str = "", status: str = STATUS_FILTER_ALL) -> list[CheckRecord]:
        return filter_checks(await self.records(), search=search, status=status)

    async def stats(self) -> CheckStats:
        return compute_stats(await self.records())

    async def user_history(self, actor: Actor) -> list[CheckRecord]:
        return records_by_creator(await self.records(), actor.address)

    async def get_check(self, candidate_id: str) -> CheckRecord:
        """Fresh read of one record; never served from the cache."""
        return await self.store.get_record(candidate_id)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self, name: str, position: str, risk_score: int, actor: Actor | None
    ) -> CheckRecord | None:
        """
        Encrypt `risk_score`, submit a new record and wait for confirmation.

        Returns the new record as read back after the refresh, or None if the
        refresh could not see it yet.

        Raises:
            NotAuthenticated: no connected account
            EncryptionFailure: the score could not be encrypted
            RejectedByUser: the signer declined the transaction
            SubmissionFailure: the ledger rejected or never confirmed the transaction
        """
        owner = self._require_actor(actor, "create")

        with self._track("create"):
            candidate_id = self.id_generator.next_id()
            self.status.pending(MSG_CREATING)
            logger.info("Creating background check", candidate_id=candidate_id, creator=owner)

            try:
                contract_address = await self.store.get_contract_address()
                encrypted = await self.codec.encrypt(contract_address, owner, risk_score)
                receipt = await self.store.create_record(
                    candidate_id,
                    name,
                    encrypted.ciphertext,
                    encrypted.proof,
                    0,
                    0,
                    position,
                    signer=owner,
                )

                self.status.pending(MSG_CONFIRMING)
                await self.store.wait_for_confirmation(receipt)

            except RejectedByUser:
                logger.info("Record creation rejected by signer", candidate_id=candidate_id)
                self.status.error(MSG_REJECTED)
                raise
            except CheckServiceError as e:
                logger.error(
                    "Record creation failed",
                    candidate_id=candidate_id,
                    error=e.message,
                    error_type=type(e).__name__,
                )
                self.status.error(f"Submission failed: {e.message}")
                raise
            except Exception as e:
                logger.error(
                    "Unexpected error creating record",
                    candidate_id=candidate_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self.status.error(f"Submission failed: {e or 'Unknown error'}")
                raise SubmissionFailure(f"Unexpected error: {e}") from e

            self.status.success(MSG_CREATED)
            await audit_logger.log_creation(owner, candidate_id, receipt.tx_hash)

            await self._refresh_after_mutation(actor)
            return self.cache.find_by_candidate(candidate_id)

    # ------------------------------------------------------------------
    # Decrypt / verify
    # ------------------------------------------------------------------

    async def decrypt(self, candidate_id: str, actor: Actor | None) -> int:
        """
        Disclose the risk score of `candidate_id` through the proof exchange.

        Idempotent: a record that is already verified returns its stored
        value without touching the codec. Losing a race against another
        verifier is also a success.

        Raises:
            NotAuthenticated: no connected account
            NotFound: no such record
            DecryptionFailure: anything else; the record is left untouched
        """
        signer = self._require_actor(actor, "decrypt")

        with self._track("decrypt"):
            try:
                record = await self.store.get_record(candidate_id)
            except NotFound:
                self.status.error(f"Decryption failed: no record {candidate_id}")
                raise
            except CheckServiceError as e:
                raise self._decryption_failed(candidate_id, e) from e

            if record.is_verified:
                logger.info("Record already verified; returning stored value", candidate_id=candidate_id)
                self.status.success(MSG_ALREADY_VERIFIED)
                await audit_logger.log_disclosure(signer, candidate_id, "already_verified")
                return record.clear_score

            self.status.pending(MSG_VERIFYING)

            async def submit(abi_encoded_clear_values: str, decryption_proof: str):
                return await self.store.submit_verification(
                    candidate_id, abi_encoded_clear_values, decryption_proof, signer=signer
                )

            try:
                handle = await self.store.get_encrypted_handle(candidate_id)
                context_address = await self.store.get_contract_address()
                result = await self.codec.verify_decryption([handle], context_address, submit)
            except AlreadyVerified:
                return await self._resolve_already_verified(candidate_id, actor)
            except CheckServiceError as e:
                raise self._decryption_failed(candidate_id, e) from e
            except Exception as e:
                logger.error(
                    "Unexpected error during decryption",
                    candidate_id=candidate_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise self._decryption_failed(candidate_id, e) from e

            clear_value = int(result.clear_values[handle])
            tx_hash = getattr(result.confirmation, "tx_hash", None)

            await self._refresh_after_mutation(actor)
            self.status.success(MSG_DECRYPTED)
            await audit_logger.log_disclosure(signer, candidate_id, "verified", tx_hash=tx_hash)

            logger.info("Risk score verified on-chain", candidate_id=candidate_id)
            return clear_value

    async def _resolve_already_verified(self, candidate_id: str, actor: Actor | None) -> int:
        """Another verifier won the race: return what the ledger now holds."""
        logger.info("Verification raced; value already on ledger", candidate_id=candidate_id)
        await self._refresh_after_mutation(actor)

        try:
            record = await self.store.get_record(candidate_id)
        except CheckServiceError as e:
            raise self._decryption_failed(candidate_id, e) from e

        if not record.is_verified:
            raise self._decryption_failed(
                candidate_id,
                DecryptionFailure("ledger reported already verified but holds no clear value"),
            )

        self.status.success(MSG_ALREADY_VERIFIED_RACE)
        await audit_logger.log_disclosure(actor.address, candidate_id, "already_verified")
        return record.clear_score

    def _decryption_failed(self, candidate_id: str, error: Exception) -> DecryptionFailure:
        reason = getattr(error, "message", None) or str(error) or "Unknown error"
        message = f"Decryption failed: {reason}"
        logger.error(
            "Decryption failed",
            candidate_id=candidate_id,
            error=reason,
            error_type=type(error).__name__,
        )
        self.status.error(message)
        return DecryptionFailure(message)
