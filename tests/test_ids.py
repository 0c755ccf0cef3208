"""Tests for public identifier encoding."""

import pytest

from campus_cms.core.exceptions import InvalidIdError
from campus_cms.core.ids import MAX_ID, IdCodec, decode_id, encode_id


@pytest.fixture
def codec():
    return IdCodec("unit-test-secret")


@pytest.mark.parametrize("internal_id", [1, 2, 61, 62, 12345, 2 ** 31, MAX_ID])
def test_decode_returns_encoded_id(codec, internal_id):
    assert codec.decode(codec.encode(internal_id)) == internal_id


def test_tokens_are_distinct_and_opaque(codec):
    tokens = {codec.encode(i) for i in range(1, 500)}
    assert len(tokens) == 499
    assert all(not token.isdigit() for token in tokens)


def test_token_from_other_secret_is_rejected(codec):
    foreign = IdCodec("another-secret").encode(42)
    with pytest.raises(InvalidIdError):
        codec.decode(foreign)


def test_tampered_body_is_rejected(codec):
    body, signature = codec.encode(42).split("-")
    forged = f"{codec.encode(43).split('-')[0]}-{signature}"
    with pytest.raises(InvalidIdError):
        codec.decode(forged)


@pytest.mark.parametrize("value", [
    "", "abc", "42", "-", "1-2-3", "0-00000000", "zzzzzzzzzzzz-0123abcd", None, 42,
    "1\n-abcdef12", "1-abcdef12\n", "\n1-abcdef12",
])
def test_malformed_tokens(codec, value):
    with pytest.raises(InvalidIdError):
        codec.decode(value)
    assert codec.decode(value, lenient=True) is None


def test_leading_zero_spelling_is_rejected(codec):
    body, signature = codec.encode(5).split("-")
    with pytest.raises(InvalidIdError):
        codec.decode(f"0{body}-{signature}")


def test_lenient_mode_still_decodes_valid_tokens(codec):
    assert codec.decode(codec.encode(7), lenient=True) == 7


@pytest.mark.parametrize("value", [0, -1, MAX_ID + 1, True, "5"])
def test_encode_rejects_out_of_range(codec, value):
    with pytest.raises(ValueError):
        codec.encode(value)


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        IdCodec("")


def test_module_helpers_share_the_configured_codec():
    token = encode_id(99)
    assert decode_id(token) == 99
    assert encode_id(None) is None
    assert decode_id("my-testimonial-slug", lenient=True) is None


def test_valid_token_with_trailing_newline_is_rejected(codec):
    assert codec.decode(codec.encode(7) + "\n", lenient=True) is None
