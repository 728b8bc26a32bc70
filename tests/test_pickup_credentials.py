"""Tests for pickup QR credential helpers."""
import pytest

from showroom.utils.pickup_credentials import (
    PickupPayloadError,
    build_payload,
    generate_token,
    parse_payload,
    qr_image_url,
)

PARSE_KW = {"marker": "SMK", "record_id_prefix": "rec", "min_token_length": 8}


def test_generated_tokens_are_long_and_unique():
    tokens = {generate_token() for _ in range(50)}
    assert len(tokens) == 50
    assert all(len(token) == 28 for token in tokens)


def test_parse_round_trip_and_url_decoding():
    payload = build_payload("SMK", "recAbc123", "tok_abcdefgh")
    parsed = parse_payload(payload, **PARSE_KW)
    assert parsed.listing_id == "recAbc123"
    assert parsed.token == "tok_abcdefgh"
    assert parsed.raw == payload

    encoded = "SMK%7CrecAbc123%7Ctok_abcdefgh"
    assert parse_payload(encoded, **PARSE_KW).raw == payload


@pytest.mark.parametrize(
    "raw",
    [
        "XYZ|recAbc123|tok_abcdefgh",
        "SMK|Abc123|tok_abcdefgh",
        "SMK||tok_abcdefgh",
        "SMK|rec|tok_abcdefgh",
        "SMK|recAbc123|short",
        "SMK|recAbc123",
        "SMK|recAbc123|tok_abcdefgh|extra",
        "",
    ],
)
def test_parse_rejects_malformed_payloads(raw):
    with pytest.raises(PickupPayloadError):
        parse_payload(raw, **PARSE_KW)


def test_qr_image_url_encodes_payload():
    url = qr_image_url("https://api.qrserver.com/v1/create-qr-code/", "SMK|recA|tok")
    assert url == "https://api.qrserver.com/v1/create-qr-code/?size=320x320&data=SMK%7CrecA%7Ctok"
