import asyncio

import pytest

from confidential_checks.models.domain.check_domain import Actor, CheckRecord, resolve_record_id
from confidential_checks.services.check_lifecycle_service import (
    CandidateIdGenerator,
    CheckLifecycleManager,
)
from confidential_checks.services.codec.abi import decode_clear_values, encode_clear_values
from confidential_checks.services.codec.confidential_codec import DecryptionResult, EncryptedInput
from confidential_checks.services.errors import (
    AlreadyVerified,
    EncryptionFailure,
    LedgerReadError,
    NotFound,
)
from confidential_checks.services.ledger.record_store import Confirmation, SubmissionReceipt
from confidential_checks.services.transaction_status import TransactionStatusChannel

CONTRACT_ADDRESS = "0xC0ntract"


class FakeLedger:
    """In-memory stand-in for the record store client."""

    def __init__(self):
        self.records: dict[str, dict] = {}
        self.staged: dict[str, dict] = {}
        self.create_error: Exception | None = None
        self.ids_error: Exception | None = None
        self.failing_reads: set[str] = set()
        self.accepted_verifications: list[str] = []
        self.next_timestamp = 1_700_000_000

    def seed(self, candidate_id: str, creator: str = "0xalice", score: int | None = None, **fields):
        """Insert a confirmed record; `score` makes it verified."""
        self.next_timestamp += 1
        self.records[candidate_id] = {
            "name": fields.get("name", "Jane Doe"),
            "position": fields.get("position", "Engineer"),
            "creator": creator,
            "timestamp": self.next_timestamp,
            "handle": fields.get("handle", f"0xhandle-{candidate_id}"),
            "is_verified": score is not None,
            "clear_score": score,
        }

    async def get_contract_address(self) -> str:
        return CONTRACT_ADDRESS

    async def get_all_ids(self) -> list[str]:
        if self.ids_error:
            raise self.ids_error
        return list(self.records)

    async def get_record(self, candidate_id: str) -> CheckRecord:
        if candidate_id in self.failing_reads:
            raise LedgerReadError(f"Malformed record {candidate_id}")
        if candidate_id not in self.records:
            raise NotFound(f"No record for {candidate_id}")
        data = self.records[candidate_id]
        return CheckRecord(
            id=resolve_record_id(candidate_id),
            candidate_id=candidate_id,
            name=data["name"],
            position=data["position"],
            creator=data["creator"],
            timestamp=data["timestamp"],
            encrypted_score_handle=data["handle"],
            is_verified=data["is_verified"],
            clear_score=data["clear_score"],
        )

    async def get_encrypted_handle(self, candidate_id: str) -> str:
        if candidate_id not in self.records:
            raise NotFound(f"No record for {candidate_id}")
        return self.records[candidate_id]["handle"]

    async def create_record(
        self, candidate_id, name, ciphertext, proof, metadata0, metadata1, position, signer
    ) -> SubmissionReceipt:
        if self.create_error:
            raise self.create_error
        tx_hash = f"0xtx-{candidate_id}"
        self.next_timestamp += 1
        self.staged[tx_hash] = {
            "candidate_id": candidate_id,
            "name": name,
            "position": position,
            "creator": signer,
            "timestamp": self.next_timestamp,
            "handle": ciphertext,
            "is_verified": False,
            "clear_score": None,
        }
        return SubmissionReceipt(tx_hash=tx_hash, candidate_id=candidate_id)

    async def wait_for_confirmation(self, receipt: SubmissionReceipt) -> Confirmation:
        await asyncio.sleep(0)
        data = self.staged.pop(receipt.tx_hash)
        self.records[data.pop("candidate_id")] = data
        return Confirmation(tx_hash=receipt.tx_hash, block_number=1)

    async def submit_verification(self, candidate_id, clear_value_encoding, proof, signer):
        record = self.records[candidate_id]
        if record["is_verified"]:
            raise AlreadyVerified("Data already verified")
        record["clear_score"] = decode_clear_values(clear_value_encoding, count=1)[0]
        record["is_verified"] = True
        self.accepted_verifications.append(candidate_id)
        return Confirmation(tx_hash=f"0xverify-{candidate_id}", block_number=2)


class FakeCodec:
    """Reversible stand-in for the relayer: remembers what each handle encrypts."""

    def __init__(self):
        self.plaintexts: dict[str, int] = {}
        self.encrypt_calls: list[tuple[str, str, int]] = []
        self.verify_calls: list[list[str]] = []
        self.encrypt_error: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def encrypt(self, target_address: str, owner_address: str, plaintext: int) -> EncryptedInput:
        self.encrypt_calls.append((target_address, owner_address, plaintext))
        if self.encrypt_error:
            raise self.encrypt_error
        if not 0 <= plaintext <= 100:
            raise EncryptionFailure(f"Score {plaintext} outside allowed range 0-100")
        handle = f"0xhandle-{len(self.plaintexts)}"
        self.plaintexts[handle] = plaintext
        return EncryptedInput(ciphertext=handle, proof="0xinputproof")

    async def verify_decryption(self, handles, context_address, submit) -> DecryptionResult:
        self.verify_calls.append(list(handles))
        if self.gate is not None:
            await self.gate.wait()
        values = [self.plaintexts[handle] for handle in handles]
        encoded = encode_clear_values(values)
        confirmation = await submit(encoded, "0xdecryptionproof")
        return DecryptionResult(
            clear_values=dict(zip(handles, values)),
            abi_encoded_clear_values=encoded,
            proof="0xdecryptionproof",
            confirmation=confirmation,
        )


class RecordingStatusChannel(TransactionStatusChannel):
    """Status channel that keeps every (phase, message) it was given."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.history: list[tuple[str, str]] = []

    def set(self, phase, message):
        self.history.append((phase, message))
        return super().set(phase, message)


@pytest.fixture
def fake_ledger():
    return FakeLedger()


@pytest.fixture
def fake_codec():
    return FakeCodec()


@pytest.fixture
def status_channel():
    return RecordingStatusChannel(success_clear_seconds=0.05, error_clear_seconds=0.05)


@pytest.fixture
def manager(fake_ledger, fake_codec, status_channel):
    ticks = iter(range(1_700_000_000_000, 1_800_000_000_000))
    return CheckLifecycleManager(
        fake_ledger,
        fake_codec,
        status=status_channel,
        id_generator=CandidateIdGenerator(clock=lambda: next(ticks)),
    )


@pytest.fixture
def alice():
    return Actor(address="0xalice", connected=True)


@pytest.fixture
def bob():
    return Actor(address="0xbob", connected=True)
