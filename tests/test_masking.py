"""Tests for masking helpers."""
from showroom.utils.masking import mask_email, mask_token, secret_fingerprint


def test_mask_email_keeps_domain():
    assert mask_email("buyer@example.com") == "***@example.com"
    assert mask_email("not-an-email") == "***@***"
    assert mask_email(None) == "***@***"


def test_mask_token_keeps_last_four():
    assert mask_token("acct_1234567890") == "***7890"
    assert mask_token("abc") == "***"


def test_secret_fingerprint_is_stable_and_opaque():
    first = secret_fingerprint("whsec_abc")
    assert first == secret_fingerprint("whsec_abc")
    assert first.startswith("sha256:")
    assert "whsec" not in first
    assert secret_fingerprint(None) is None
