"""
Record store client.

Low-level client for the ledger gateway that fronts the background check
contract. Knows nothing about encryption: ciphertexts, proofs and handles are
passed through as opaque strings. Writes return a submission receipt; a
record only becomes visible to readers once its transaction is confirmed.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from confidential_checks.config import settings
from confidential_checks.infrastructure.observability.logging import get_logger
from confidential_checks.models.domain.check_domain import CheckRecord, resolve_record_id
from confidential_checks.services.errors import (
    AlreadyVerified,
    LedgerReadError,
    NotFound,
    RejectedByUser,
    SubmissionFailure,
)
from confidential_checks.services.infrastructure.http_client import (
    HttpServiceError,
    RetryingHttpClient,
)

logger = get_logger(__name__)

# Wallet / provider codes for a declined signature request
USER_REJECTED_CODES = {"4001", "ACTION_REJECTED"}
USER_REJECTED_MARKERS = ("user rejected", "user denied")
ALREADY_VERIFIED_MARKER = "already verified"


@dataclass(frozen=True, slots=True)
class SubmissionReceipt:
    tx_hash: str
    candidate_id: str


@dataclass(frozen=True, slots=True)
class Confirmation:
    tx_hash: str
    block_number: int | None = None


def _map_write_error(error: HttpServiceError, operation: str) -> Exception:
    """Translate a gateway error on a write into the lifecycle taxonomy."""
    message = error.message or ""
    lowered = message.lower()

    if (error.error_code in USER_REJECTED_CODES) or any(m in lowered for m in USER_REJECTED_MARKERS):
        return RejectedByUser("Transaction rejected by user", details={"operation": operation})
    if ALREADY_VERIFIED_MARKER in lowered:
        return AlreadyVerified("Data already verified", details={"operation": operation})
    return SubmissionFailure(message or f"{operation} failed", details={"operation": operation})


class RecordStoreClient(RetryingHttpClient):
    """
    Read/write access to the authoritative record ledger.

    Every method suspends on the network; none of them caches.
    """

    service_name = "ledger"

    def __init__(
        self,
        base_url: str | None = None,
        api_token: str | None = None,
        contract_address: str | None = None,
        confirmation_timeout: float | None = None,
        poll_interval: float | None = None,
        **kwargs,
    ):
        token = api_token if api_token is not None else settings.LEDGER_API_TOKEN
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        super().__init__(base_url or settings.ledger_base_url(), headers=headers, **kwargs)
        self._contract_address = contract_address or settings.RECORD_CONTRACT_ADDRESS
        self.confirmation_timeout = (
            settings.CONFIRMATION_TIMEOUT if confirmation_timeout is None else confirmation_timeout
        )
        self.poll_interval = (
            settings.CONFIRMATION_POLL_INTERVAL if poll_interval is None else poll_interval
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read(self, path: str, operation: str, candidate_id: str | None = None) -> dict[str, Any]:
        try:
            data = await self._call("GET", path, operation)
        except HttpServiceError as e:
            if e.status_code == 404:
                raise NotFound(f"No record for {candidate_id}") from e
            raise LedgerReadError(f"Ledger read failed: {e.message}") from e

        if not isinstance(data, dict):
            logger.warning(
                "Ledger returned non-object body",
                operation=operation,
                candidate_id=candidate_id,
                body_type=type(data).__name__,
            )
            raise LedgerReadError(f"Malformed {operation} response: expected an object")
        return data

    async def get_contract_address(self) -> str:
        """Address of the record contract (target for encryption and decryption)."""
        if self._contract_address:
            return self._contract_address
        data = await self._read("/v1/contract", "get_contract_address")
        address = data.get("address")
        if not address:
            raise LedgerReadError("Ledger gateway did not report a contract address")
        self._contract_address = address
        return address

    async def ping(self) -> bool:
        try:
            await self._call("GET", "/v1/contract", "ping")
            return True
        except HttpServiceError as e:
            logger.error("Ledger ping failed", error=str(e))
            return False

    async def get_all_ids(self) -> list[str]:
        data = await self._read("/v1/records", "get_all_ids")
        ids = data.get("ids")
        if not isinstance(ids, list):
            raise LedgerReadError("Ledger returned no id list")
        return [str(candidate_id) for candidate_id in ids]

    async def get_record(self, candidate_id: str) -> CheckRecord:
        data = await self._read(f"/v1/records/{candidate_id}", "get_record", candidate_id)
        return self._to_record(candidate_id, data)

    async def get_encrypted_handle(self, candidate_id: str) -> str:
        data = await self._read(
            f"/v1/records/{candidate_id}/encrypted-value", "get_encrypted_handle", candidate_id
        )
        handle = data.get("handle")
        if not handle:
            raise NotFound(f"No encrypted value for {candidate_id}")
        return handle

    def _to_record(self, candidate_id: str, data: dict[str, Any]) -> CheckRecord:
        """Map gateway record data onto a CheckRecord."""
        try:
            is_verified = data.get("isVerified", False)
            if not isinstance(is_verified, bool):
                raise TypeError(f"isVerified must be a boolean, got {is_verified!r}")
            return CheckRecord(
                id=resolve_record_id(candidate_id, data.get("id")),
                candidate_id=candidate_id,
                name=data["name"],
                position=data.get("description", ""),
                creator=data["creator"],
                timestamp=int(data.get("timestamp") or 0),
                encrypted_score_handle=data["encryptedValue"],
                public_value1=int(data.get("publicValue1") or 0),
                public_value2=int(data.get("publicValue2") or 0),
                is_verified=is_verified,
                # The ledger reports 0 for undisclosed values; 0 is only a score once verified
                clear_score=int(data.get("decryptedValue") or 0) if is_verified else None,
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise LedgerReadError(f"Malformed record {candidate_id}: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_record(
        self,
        candidate_id: str,
        name: str,
        ciphertext: str,
        proof: str,
        metadata0: int,
        metadata1: int,
        position: str,
        signer: str,
    ) -> SubmissionReceipt:
        """
        Submit a new record. Not visible to readers until confirmed.

        Raises:
            RejectedByUser: the signer declined
            SubmissionFailure: network or ledger rejection
        """
        payload = {
            "candidate_id": candidate_id,
            "name": name,
            "encrypted_value": ciphertext,
            "input_proof": proof,
            "public_value1": metadata0,
            "public_value2": metadata1,
            "description": position,
            "from": signer,
        }
        try:
            data = await self._call("POST", "/v1/records", "create_record", json=payload)
        except HttpServiceError as e:
            raise _map_write_error(e, "create_record") from e

        tx_hash = data.get("tx_hash")
        if not tx_hash:
            raise SubmissionFailure("Ledger did not return a transaction hash")

        logger.info("Record submitted", candidate_id=candidate_id, tx_hash=tx_hash)
        return SubmissionReceipt(tx_hash=tx_hash, candidate_id=candidate_id)

    async def wait_for_confirmation(self, receipt: SubmissionReceipt) -> Confirmation:
        """
        Poll until the transaction is mined.

        Raises:
            AlreadyVerified: the transaction reverted because the value was already disclosed
            SubmissionFailure: reverted, or not confirmed within the timeout
        """
        deadline = time.monotonic() + self.confirmation_timeout

        while True:
            try:
                data = await self._call("GET", f"/v1/transactions/{receipt.tx_hash}", "wait")
            except HttpServiceError as e:
                raise SubmissionFailure(f"Could not track transaction: {e.message}") from e

            state = data.get("status")
            if state == "confirmed":
                logger.info(
                    "Transaction confirmed",
                    tx_hash=receipt.tx_hash,
                    block_number=data.get("block_number"),
                )
                return Confirmation(tx_hash=receipt.tx_hash, block_number=data.get("block_number"))

            if state == "reverted":
                reason = data.get("error") or "transaction reverted"
                logger.warning("Transaction reverted", tx_hash=receipt.tx_hash, reason=reason)
                raise _map_write_error(HttpServiceError(reason), "confirmation")

            if time.monotonic() >= deadline:
                raise SubmissionFailure(
                    f"Transaction {receipt.tx_hash} not confirmed after {self.confirmation_timeout}s"
                )
            await asyncio.sleep(self.poll_interval)

    async def submit_verification(
        self, candidate_id: str, clear_value_encoding: str, proof: str, signer: str
    ) -> Confirmation:
        """
        Submit a clear value and its decryption proof, then wait for confirmation.

        Raises:
            AlreadyVerified: the ledger already holds a verified value for this record
            RejectedByUser: the signer declined
            SubmissionFailure: anything else
        """
        payload = {"clear_values": clear_value_encoding, "decryption_proof": proof, "from": signer}
        try:
            data = await self._call(
                "POST",
                f"/v1/records/{candidate_id}/verify-decryption",
                "submit_verification",
                json=payload,
            )
        except HttpServiceError as e:
            if e.status_code == 404:
                raise NotFound(f"No record for {candidate_id}") from e
            raise _map_write_error(e, "submit_verification") from e

        tx_hash = data.get("tx_hash")
        if not tx_hash:
            raise SubmissionFailure("Ledger did not return a transaction hash")

        logger.info("Verification submitted", candidate_id=candidate_id, tx_hash=tx_hash)
        return await self.wait_for_confirmation(
            SubmissionReceipt(tx_hash=tx_hash, candidate_id=candidate_id)
        )
