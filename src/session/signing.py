"""
Signing of session identifiers.

Only the identifier is authenticated. The session data lives in the store
and can change without re-signing.
"""
import hashlib
import hmac
import logging

from itsdangerous import Signer

from .codec import DELIMITER
from .errors import SignatureMismatch

logger = logging.getLogger('session.signing')

SIGNER_SALT = "session.id-signer"


class SessionSigner:
    """HMAC-SHA256 signer for session identifiers, keyed on one secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("A signing secret is required")
        self._signer = Signer(
            secret,
            salt=SIGNER_SALT,
            sep=DELIMITER,
            key_derivation="hmac",
            digest_method=hashlib.sha256,
        )

    def sign(self, session_id: str) -> str:
        """Return the URL-safe base64 signature for session_id."""
        return self._signer.get_signature(session_id).decode("ascii")

    def verify(self, session_id: str, signature: str) -> bool:
        """
        Recompute the signature and compare in constant time.

        The comparison is on the encoded form, so a signature that decodes to
        the same bytes but is spelled differently is rejected. Each identifier
        has exactly one valid transport value.
        """
        expected = self._signer.get_signature(session_id)
        return hmac.compare_digest(signature.encode("utf-8"), expected)

    def unsign(self, session_id: str, signature: str) -> str:
        if not self.verify(session_id, signature):
            raise SignatureMismatch("Session signature does not match")
        return session_id


def sign(session_id: str, secret: str) -> str:
    return SessionSigner(secret).sign(session_id)


def verify(session_id: str, signature: str, secret: str) -> bool:
    return SessionSigner(secret).verify(session_id, signature)
