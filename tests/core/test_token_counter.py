# tests/core/test_token_counter.py
import pytest

from promptgen.core.token_counter import (
    DEFAULT_ENCODING, _get_cached_encoder, count_tokens, estimate_tokens, estimate_tokens_from_size,
    format_token_status,
)

requires_encoder = pytest.mark.skipif(
    _get_cached_encoder(DEFAULT_ENCODING) is None,
    reason="tiktoken encoding files could not be loaded",
)


@requires_encoder
def test_count_tokens_simple():
    assert count_tokens("hello world", DEFAULT_ENCODING) == 2


@requires_encoder
def test_count_tokens_longer_text():
    token_count = count_tokens("This is a slightly longer sentence to test token counting.")
    assert 5 < token_count < 20


@requires_encoder
def test_special_token_text_is_counted_as_plain_text():
    assert count_tokens("<|endoftext|>") > 1


def test_count_tokens_empty():
    assert count_tokens("") == 0


def test_count_tokens_estimation_fallback(no_encoder):
    text = "This text will be estimated based on characters."
    assert count_tokens(text) == estimate_tokens(text)


def test_count_tokens_falls_back_when_encode_fails(mocker):
    encoder = mocker.Mock()
    encoder.encode.side_effect = RuntimeError("broken")
    mocker.patch("promptgen.core.token_counter._get_cached_encoder", return_value=encoder)
    assert count_tokens("abcdefgh") == 2


def test_estimates_round_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens_from_size(4) == 1
    assert estimate_tokens_from_size(4001) == 1001


def test_format_token_status():
    assert format_token_status(50_000, 200_000) == "Token count: 50,000 / 200,000 (25.00%)"
    assert format_token_status(3, 0).endswith("(0.00%)")
