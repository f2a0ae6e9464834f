import pytest

from confidential_checks.services.codec.abi import (
    AbiEncodingError,
    decode_clear_values,
    encode_clear_values,
)


def test_encode_single_value_as_one_word():
    encoded = encode_clear_values([85])

    assert encoded == "0x" + "00" * 31 + "55"


def test_decode_multiple_words():
    encoded = "0x" + "00" * 31 + "46" + "00" * 32

    assert decode_clear_values(encoded) == [70, 0]


def test_decode_rejects_partial_word():
    with pytest.raises(AbiEncodingError):
        decode_clear_values("0x" + "00" * 31)


def test_decode_enforces_expected_count():
    with pytest.raises(AbiEncodingError):
        decode_clear_values(encode_clear_values([1, 2]), count=1)


def test_decode_rejects_non_hex():
    with pytest.raises(AbiEncodingError):
        decode_clear_values("0xzz")


@pytest.mark.parametrize("value", [-1, True, "85"])
def test_encode_rejects_invalid_values(value):
    with pytest.raises(AbiEncodingError):
        encode_clear_values([value])
