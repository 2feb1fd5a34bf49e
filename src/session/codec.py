"""
Transport encoding of signed session identifiers.

A cookie value is `<identifier>.<signature>`. Both parts are drawn from the
URL-safe base64 alphabet, which `urllib.parse.quote` leaves untouched, so a
percent-encode/decode round trip reproduces the value exactly and the
delimiter can never appear inside either part.
"""
import re
from typing import Tuple
from urllib.parse import unquote

from .errors import MalformedTransportValue

DELIMITER = "."

_PART_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def is_valid_part(part: str) -> bool:
    return bool(part) and _PART_PATTERN.fullmatch(part) is not None


def encode(session_id: str, signature: str) -> str:
    if not is_valid_part(session_id):
        raise MalformedTransportValue("Session identifier contains characters outside the cookie alphabet")
    if not is_valid_part(signature):
        raise MalformedTransportValue("Signature contains characters outside the cookie alphabet")
    return f"{session_id}{DELIMITER}{signature}"


def decode(value: str) -> Tuple[str, str]:
    """
    Split a transport value into (identifier, signature).

    The value is percent-decoded once first, so a value that went through an
    extra encoding layer still decodes to the same pair.

    Raises:
        MalformedTransportValue: the value does not split into exactly two
            non-empty parts from the expected alphabet.
    """
    if not isinstance(value, str) or not value:
        raise MalformedTransportValue("Empty transport value")

    parts = unquote(value).split(DELIMITER)
    if len(parts) != 2:
        raise MalformedTransportValue(f"Expected 2 parts separated by '{DELIMITER}', got {len(parts)}")

    session_id, signature = parts
    if not is_valid_part(session_id):
        raise MalformedTransportValue("Malformed session identifier")
    if not is_valid_part(signature):
        raise MalformedTransportValue("Malformed signature")

    return session_id, signature
