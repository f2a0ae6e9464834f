"""
Clear-value encoding used by the decryption proof exchange.

Each value is one 32-byte big-endian unsigned word; words are concatenated
and hex encoded with a ``0x`` prefix.
"""

WORD_SIZE = 32
_MAX_UINT256 = (1 << 256) - 1


class AbiEncodingError(ValueError):
    """Raised when clear values cannot be encoded or decoded."""


def encode_clear_values(values: list[int]) -> str:
    words = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise AbiEncodingError(f"Clear value must be an integer, got {type(value).__name__}")
        if value < 0 or value > _MAX_UINT256:
            raise AbiEncodingError(f"Clear value out of uint256 range: {value}")
        words.append(value.to_bytes(WORD_SIZE, "big"))
    return "0x" + b"".join(words).hex()


def decode_clear_values(encoded: str, count: int | None = None) -> list[int]:
    data = encoded[2:] if encoded.startswith(("0x", "0X")) else encoded
    try:
        raw = bytes.fromhex(data)
    except ValueError as e:
        raise AbiEncodingError(f"Clear values are not valid hex: {e}") from e

    if len(raw) % WORD_SIZE:
        raise AbiEncodingError(f"Encoded clear values length {len(raw)} is not a multiple of 32")

    values = [
        int.from_bytes(raw[offset : offset + WORD_SIZE], "big")
        for offset in range(0, len(raw), WORD_SIZE)
    ]
    if count is not None and len(values) != count:
        raise AbiEncodingError(f"Expected {count} clear values, got {len(values)}")
    return values
