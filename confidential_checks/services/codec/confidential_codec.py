"""
Confidential value codec.

Adapter over the confidential compute relayer. `encrypt` turns a plaintext
score into a ciphertext handle plus input proof bound to a contract and an
owner. `verify_decryption` asks the relayer for a public decryption of one
or more handles, hands the ABI-encoded clear values and the decryption proof
to a `submit` callback (which gets them accepted by the ledger), and only then
returns the clear values. No state is kept between calls.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from confidential_checks.config import settings
from confidential_checks.infrastructure.observability.logging import get_logger
from confidential_checks.services.codec.abi import AbiEncodingError, decode_clear_values
from confidential_checks.services.errors import DecryptionFailure, EncryptionFailure
from confidential_checks.services.infrastructure.http_client import (
    HttpServiceError,
    RetryingHttpClient,
)

logger = get_logger(__name__)

# Encrypted scores are 8-bit unsigned integers on the ledger
SCORE_BITS = 8

SubmitCallback = Callable[[str, str], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class EncryptedInput:
    ciphertext: str
    proof: str


@dataclass(frozen=True, slots=True)
class DecryptionResult:
    clear_values: dict[str, int]
    abi_encoded_clear_values: str
    proof: str
    # Whatever `submit` returned, e.g. the ledger confirmation
    confirmation: Any = None


class ConfidentialCodec(RetryingHttpClient):
    """Relayer-backed encrypt / verify-decryption capability."""

    service_name = "relayer"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        score_min: int | None = None,
        score_max: int | None = None,
        **kwargs,
    ):
        key = api_key if api_key is not None else settings.RELAYER_API_KEY
        headers = {"x-api-key": key} if key else {}
        super().__init__(base_url or settings.relayer_base_url(), headers=headers, **kwargs)
        self.score_min = settings.SCORE_MIN if score_min is None else score_min
        self.score_max = settings.SCORE_MAX if score_max is None else score_max
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Fetch the relayer's public key material so encryption can start."""
        if self._initialized:
            return
        try:
            data = await self._call("GET", "/v1/keyurl", "initialize")
        except HttpServiceError as e:
            logger.error("Relayer initialization failed", error=str(e))
            raise EncryptionFailure(f"Relayer initialization failed: {e.message}") from e

        self._initialized = True
        logger.info("Relayer initialized", key_id=data.get("key_id"))

    async def ping(self) -> bool:
        try:
            await self._call("GET", "/v1/keyurl", "ping")
            return True
        except HttpServiceError as e:
            logger.error("Relayer ping failed", error=str(e))
            return False

    def _validate_plaintext(self, plaintext: int) -> None:
        if isinstance(plaintext, bool) or not isinstance(plaintext, int):
            raise EncryptionFailure(
                f"Score must be an integer, got {type(plaintext).__name__}",
                error_code="invalid_score",
            )
        if not self.score_min <= plaintext <= self.score_max:
            raise EncryptionFailure(
                f"Score {plaintext} outside allowed range {self.score_min}-{self.score_max}",
                error_code="invalid_score",
            )

    async def encrypt(self, target_address: str, owner_address: str, plaintext: int) -> EncryptedInput:
        """
        Encrypt `plaintext` for use by `target_address` on behalf of `owner_address`.

        Raises:
            EncryptionFailure: invalid input, relayer error, malformed response or timeout
        """
        self._validate_plaintext(plaintext)
        await self.initialize()

        payload = {
            "contract_address": target_address,
            "user_address": owner_address,
            "values": [{"type": f"euint{SCORE_BITS}", "value": plaintext}],
        }
        try:
            data = await self._call("POST", "/v1/input-proof", "encrypt", json=payload)
            handles = data["handles"]
            proof = data["input_proof"]
            if not handles:
                raise KeyError("handles")
        except HttpServiceError as e:
            logger.error("Encryption failed", target=target_address, error=e.message)
            raise EncryptionFailure(f"Encryption failed: {e.message}") from e
        except (KeyError, TypeError) as e:
            logger.error("Relayer returned malformed encryption response", error=str(e))
            raise EncryptionFailure(f"Malformed encryption response: missing {e}") from e

        logger.info("Value encrypted", target=target_address, owner=owner_address)
        return EncryptedInput(ciphertext=handles[0], proof=proof)

    async def verify_decryption(
        self, handles: list[str], context_address: str, submit: SubmitCallback
    ) -> DecryptionResult:
        """
        Exchange encrypted handles for ledger-accepted clear values.

        `submit(abi_encoded_clear_values, proof)` is awaited before the clear
        values are returned; anything it raises (AlreadyVerified included)
        propagates unchanged.

        Raises:
            DecryptionFailure: the relayer could not produce clear values and a proof
        """
        if not handles:
            raise DecryptionFailure("No encrypted handles to decrypt")

        payload = {"handles": list(handles), "contract_address": context_address}
        try:
            data = await self._call("POST", "/v1/public-decrypt", "verify_decryption", json=payload)
            encoded = data["clear_values"]
            proof = data["decryption_proof"]
            values = decode_clear_values(encoded, count=len(handles))
        except HttpServiceError as e:
            logger.error("Decryption proof generation failed", error=e.message)
            raise DecryptionFailure(f"Proof generation failed: {e.message}") from e
        except (KeyError, TypeError, AbiEncodingError) as e:
            logger.error("Relayer returned malformed decryption response", error=str(e))
            raise DecryptionFailure(f"Malformed decryption response: {e}") from e

        confirmation = await submit(encoded, proof)

        logger.info("Decryption accepted by ledger", handle_count=len(handles))
        return DecryptionResult(
            clear_values=dict(zip(handles, values, strict=True)),
            abi_encoded_clear_values=encoded,
            proof=proof,
            confirmation=confirmation,
        )
