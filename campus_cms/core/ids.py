"""Public identifier obfuscation.

Database primary keys never leave the service as plain integers. They are
exposed as ``<base62 id>-<signature>`` tokens, where the signature is a
truncated HMAC-SHA256 of the id under ``Settings.ID_SECRET``. Tokens are
reversible by the server only; a token with a foreign or altered signature is
rejected rather than resolved.
"""

import hashlib
import hmac
import re
from functools import lru_cache
from typing import Optional

from campus_cms.core.config import get_settings
from campus_cms.core.exceptions import InvalidIdError

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
SIGNATURE_LENGTH = 8
MAX_ID = 2 ** 63 - 1
# 62 ** 11 > 2 ** 63, so no valid body is longer than this
MAX_BODY_LENGTH = 11

_BODY_RE = re.compile(r"[0-9A-Za-z]{1,%d}" % MAX_BODY_LENGTH)
_SIGNATURE_RE = re.compile(r"[0-9a-f]{%d}" % SIGNATURE_LENGTH)


def _to_base62(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 62)
        digits.append(ALPHABET[remainder])
    return "".join(reversed(digits)) or ALPHABET[0]


def _from_base62(body: str) -> int:
    value = 0
    for char in body:
        value = value * 62 + ALPHABET.index(char)
    return value


class IdCodec:
    """Encode and decode public identifiers with a server-side secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("IdCodec requires a non-empty secret")
        self._key = secret.encode("utf-8")

    def _sign(self, internal_id: int) -> str:
        digest = hmac.new(self._key, str(internal_id).encode("ascii"), hashlib.sha256)
        return digest.hexdigest()[:SIGNATURE_LENGTH]

    def encode(self, internal_id: int) -> str:
        if isinstance(internal_id, bool) or not isinstance(internal_id, int):
            raise ValueError("Identifier must be an integer")
        if internal_id <= 0 or internal_id > MAX_ID:
            raise ValueError("Identifier must be a positive 64-bit integer")
        return f"{_to_base62(internal_id)}-{self._sign(internal_id)}"

    def decode(self, token: str, lenient: bool = False) -> Optional[int]:
        """Return the id behind ``token``.

        Raises ``InvalidIdError`` for anything this codec did not produce.
        With ``lenient=True`` the same failures return ``None`` instead, so a
        caller can fall back to treating the value as a slug.
        """
        internal_id = self._parse(token)
        if internal_id is None and not lenient:
            raise InvalidIdError()
        return internal_id

    def _parse(self, token) -> Optional[int]:
        if not isinstance(token, str):
            return None

        parts = token.split("-")
        if len(parts) != 2:
            return None
        body, signature = parts

        if not _BODY_RE.fullmatch(body) or not _SIGNATURE_RE.fullmatch(signature):
            return None
        # Leading zeros would give a second spelling of the same id
        if len(body) > 1 and body[0] == ALPHABET[0]:
            return None

        internal_id = _from_base62(body)
        if internal_id <= 0 or internal_id > MAX_ID:
            return None

        if not hmac.compare_digest(signature, self._sign(internal_id)):
            return None
        return internal_id


@lru_cache()
def get_id_codec() -> IdCodec:
    """Get the process-wide codec bound to the configured secret."""
    return IdCodec(get_settings().ID_SECRET)


def encode_id(internal_id: Optional[int]) -> Optional[str]:
    """Encode an id for output; ``None`` passes through for nullable columns."""
    if internal_id is None:
        return None
    return get_id_codec().encode(internal_id)


def decode_id(token: str, lenient: bool = False) -> Optional[int]:
    return get_id_codec().decode(token, lenient=lenient)
