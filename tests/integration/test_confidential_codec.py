"""
Confidential codec against a mocked relayer.
"""

import json

import httpx
import pytest

from confidential_checks.services.codec.abi import encode_clear_values
from confidential_checks.services.codec.confidential_codec import ConfidentialCodec
from confidential_checks.services.errors import (
    AlreadyVerified,
    DecryptionFailure,
    EncryptionFailure,
)


def _codec(handler) -> ConfidentialCodec:
    return ConfidentialCodec(
        base_url="http://relayer.test",
        api_key="relayer-key",
        transport=httpx.MockTransport(handler),
        max_retries=1,
        backoff_factor=0,
    )


def _relayer(routes: dict):
    def handler(request: httpx.Request) -> httpx.Response:
        route = routes[request.url.path]
        return route(request) if callable(route) else route

    return handler


def _keyurl(request):
    return httpx.Response(200, json={"key_id": "key-1"})


@pytest.mark.asyncio
async def test_encrypt_returns_ciphertext_and_proof():
    seen = {}

    def input_proof(request):
        seen["body"] = json.loads(request.content)
        seen["api_key"] = request.headers.get("x-api-key")
        return httpx.Response(200, json={"handles": ["0xhandle"], "input_proof": "0xproof"})

    codec = _codec(_relayer({"/v1/keyurl": _keyurl, "/v1/input-proof": input_proof}))
    encrypted = await codec.encrypt("0xC0ntract", "0xalice", 85)
    await codec.close()

    assert encrypted.ciphertext == "0xhandle"
    assert encrypted.proof == "0xproof"
    assert seen["body"]["contract_address"] == "0xC0ntract"
    assert seen["body"]["user_address"] == "0xalice"
    assert seen["body"]["values"][0]["value"] == 85
    assert seen["api_key"] == "relayer-key"


@pytest.mark.asyncio
@pytest.mark.parametrize("score", [-1, 101, True, 85.0])
async def test_encrypt_rejects_invalid_scores_without_calling_relayer(score):
    def handler(request):
        raise AssertionError("relayer must not be called")

    codec = _codec(handler)
    with pytest.raises(EncryptionFailure):
        await codec.encrypt("0xC0ntract", "0xalice", score)
    await codec.close()


@pytest.mark.asyncio
async def test_encrypt_timeout_is_encryption_failure():
    def input_proof(request):
        raise httpx.ReadTimeout("relayer too slow", request=request)

    codec = _codec(_relayer({"/v1/keyurl": _keyurl, "/v1/input-proof": input_proof}))
    with pytest.raises(EncryptionFailure):
        await codec.encrypt("0xC0ntract", "0xalice", 50)
    await codec.close()


@pytest.mark.asyncio
async def test_encrypt_fails_when_relayer_cannot_initialize():
    codec = _codec(_relayer({"/v1/keyurl": httpx.Response(500)}))

    with pytest.raises(EncryptionFailure):
        await codec.encrypt("0xC0ntract", "0xalice", 50)
    assert codec.is_initialized is False
    await codec.close()


@pytest.mark.asyncio
async def test_verify_decryption_submits_before_returning():
    encoded = encode_clear_values([85])
    submitted = []

    async def submit(abi_encoded_clear_values, proof):
        submitted.append((abi_encoded_clear_values, proof))

    codec = _codec(
        _relayer(
            {
                "/v1/public-decrypt": httpx.Response(
                    200, json={"clear_values": encoded, "decryption_proof": "0xdproof"}
                )
            }
        )
    )
    result = await codec.verify_decryption(["0xhandle"], "0xC0ntract", submit)
    await codec.close()

    assert submitted == [(encoded, "0xdproof")]
    assert result.clear_values == {"0xhandle": 85}


@pytest.mark.asyncio
async def test_verify_decryption_returns_submit_result():
    async def submit(abi_encoded_clear_values, proof):
        return {"tx_hash": "0xverify"}

    codec = _codec(
        _relayer(
            {
                "/v1/public-decrypt": httpx.Response(
                    200, json={"clear_values": encode_clear_values([70]), "decryption_proof": "0xd"}
                )
            }
        )
    )
    result = await codec.verify_decryption(["0xhandle"], "0xC0ntract", submit)
    await codec.close()

    assert result.confirmation == {"tx_hash": "0xverify"}


@pytest.mark.asyncio
async def test_verify_decryption_propagates_already_verified():
    async def submit(abi_encoded_clear_values, proof):
        raise AlreadyVerified("Data already verified")

    codec = _codec(
        _relayer(
            {
                "/v1/public-decrypt": httpx.Response(
                    200,
                    json={"clear_values": encode_clear_values([40]), "decryption_proof": "0xdproof"},
                )
            }
        )
    )
    with pytest.raises(AlreadyVerified):
        await codec.verify_decryption(["0xhandle"], "0xC0ntract", submit)
    await codec.close()


@pytest.mark.asyncio
async def test_verify_decryption_proof_failure_never_submits():
    submitted = []

    async def submit(abi_encoded_clear_values, proof):
        submitted.append(proof)

    codec = _codec(
        _relayer(
            {
                "/v1/public-decrypt": httpx.Response(
                    400, json={"error": {"code": "acl", "message": "handle not publicly decryptable"}}
                )
            }
        )
    )
    with pytest.raises(DecryptionFailure):
        await codec.verify_decryption(["0xhandle"], "0xC0ntract", submit)
    await codec.close()

    assert submitted == []


@pytest.mark.asyncio
async def test_verify_decryption_rejects_mismatched_value_count():
    async def submit(abi_encoded_clear_values, proof):
        raise AssertionError("must not submit")

    codec = _codec(
        _relayer(
            {
                "/v1/public-decrypt": httpx.Response(
                    200,
                    json={"clear_values": encode_clear_values([1, 2]), "decryption_proof": "0xd"},
                )
            }
        )
    )
    with pytest.raises(DecryptionFailure):
        await codec.verify_decryption(["0xhandle"], "0xC0ntract", submit)
    await codec.close()
