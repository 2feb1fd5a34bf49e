import string

import pytest

from session import codec
from session.errors import SignatureMismatch
from session.signing import SessionSigner, sign, verify

SESSION_ID = "0123456789abcdef" * 4


class TestSessionSigner:
    def test_sign_is_deterministic(self):
        signer = SessionSigner("secret-one")
        assert signer.sign(SESSION_ID) == signer.sign(SESSION_ID)

    def test_signature_uses_cookie_alphabet(self):
        signature = SessionSigner("secret-one").sign(SESSION_ID)
        assert codec.is_valid_part(signature)
        assert codec.DELIMITER not in signature

    def test_verify_accepts_own_signature(self):
        signer = SessionSigner("secret-one")
        assert signer.verify(SESSION_ID, signer.sign(SESSION_ID))

    def test_verify_rejects_other_identifier(self):
        signer = SessionSigner("secret-one")
        signature = signer.sign(SESSION_ID)
        assert not signer.verify("f" * 64, signature)

    def test_verify_rejects_other_secret(self):
        signature = SessionSigner("secret-one").sign(SESSION_ID)
        assert not SessionSigner("secret-two").verify(SESSION_ID, signature)

    def test_verify_rejects_garbage_signature(self):
        signer = SessionSigner("secret-one")
        assert not signer.verify(SESSION_ID, "not-a-signature")
        assert not signer.verify(SESSION_ID, "")

    def test_verify_rejects_non_canonical_encoding(self):
        # the last base64 character carries two unused bits
        alphabet = string.ascii_uppercase + string.ascii_lowercase + string.digits + "-_"
        signer = SessionSigner("secret-one")
        signature = signer.sign(SESSION_ID)
        variant = signature[:-1] + alphabet[alphabet.index(signature[-1]) ^ 1]

        assert variant != signature
        assert not signer.verify(SESSION_ID, variant)

    def test_unsign_raises_on_mismatch(self):
        signer = SessionSigner("secret-one")
        assert signer.unsign(SESSION_ID, signer.sign(SESSION_ID)) == SESSION_ID
        with pytest.raises(SignatureMismatch):
            signer.unsign(SESSION_ID, SessionSigner("secret-two").sign(SESSION_ID))

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            SessionSigner("")


def test_module_helpers_match_signer():
    signature = sign(SESSION_ID, "secret-one")
    assert signature == SessionSigner("secret-one").sign(SESSION_ID)
    assert verify(SESSION_ID, signature, "secret-one")
    assert not verify(SESSION_ID, signature, "secret-two")
