"""Auth Token Codec — issues and verifies HS256-signed identity tokens.

Invariants:
    - Every issued token carries user_id, username, iss, iat, nbf, exp with exp > iat
    - verify() checks the signature before any claim, then the time window and issuer
    - Failures map to exactly one InvalidTokenError subclass (malformed, bad signature,
      expired, not yet valid)

Design Decisions:
    - PyJWT for encoding and signature checks; its exception types map 1:1 onto ours
    - A token whose header and payload still decode is signature-damaged, whatever PyJWT
      reports: a non-canonical signature segment is rejected before PyJWT sees it
    - Codec is an instance built from JWTSettings and owned by the app, not a module global
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt.utils import base64url_decode, base64url_encode

from webtemplate.config import JWTSettings
from webtemplate.core.errors import (
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    NotYetValidError,
)

REQUIRED_CLAIMS = ["user_id", "username", "iss", "iat", "nbf", "exp"]


def _json_segment(segment: str) -> dict | None:
    try:
        value = json.loads(base64url_decode(segment))
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _claims_intact(token: str) -> bool:
    """True when header and payload decode; any damage is then in the signature."""
    parts = token.split(".")
    return (
        len(parts) == 3
        and _json_segment(parts[0]) is not None
        and _json_segment(parts[1]) is not None
    )


def _signature_canonical(token: str) -> bool:
    """Reject signature text that only decodes leniently (stray padding bits, foreign characters)."""
    segment = token.rsplit(".", 1)[-1]
    try:
        raw = base64url_decode(segment)
    except ValueError:
        return False
    return base64url_encode(raw).decode("ascii") == segment


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    username: str
    issuer: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime


def _timestamp(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def decode_claims(payload: dict[str, Any]) -> TokenClaims:
    """Build TokenClaims from an already-verified payload."""
    user_id = payload.get("user_id")
    username = payload.get("username")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise MalformedTokenError("user_id claim must be an integer")
    if not isinstance(username, str):
        raise MalformedTokenError("username claim must be a string")
    try:
        return TokenClaims(
            user_id=user_id,
            username=username,
            issuer=str(payload["iss"]),
            issued_at=_timestamp(payload["iat"]),
            not_before=_timestamp(payload["nbf"]),
            expires_at=_timestamp(payload["exp"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedTokenError(f"invalid registered claim: {e}") from e


class TokenCodec:
    """Sign and verify identity tokens with a shared secret."""

    def __init__(self, settings: JWTSettings):
        self._secret = settings.secret
        self._algorithm = settings.algorithm
        self.issuer = settings.issuer
        self.expire_hours = settings.expire_hours

    def issue(self, user_id: int, username: str, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "user_id": user_id,
            "username": username,
            "iss": self.issuer,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": issued_at + timedelta(hours=self.expire_hours),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        raw = (token or "").strip()
        if not raw:
            raise MalformedTokenError("token is empty")
        if _claims_intact(raw) and not _signature_canonical(raw):
            raise InvalidSignatureError("signature segment is not canonical base64url")
        try:
            payload = jwt.decode(
                raw,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self.issuer,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.InvalidSignatureError as e:
            raise InvalidSignatureError(str(e)) from e
        except jwt.ExpiredSignatureError as e:
            raise ExpiredTokenError(str(e)) from e
        except jwt.ImmatureSignatureError as e:
            raise NotYetValidError(str(e)) from e
        except jwt.DecodeError as e:
            if _claims_intact(raw):
                raise InvalidSignatureError(str(e)) from e
            raise MalformedTokenError(str(e)) from e
        except jwt.InvalidTokenError as e:
            # InvalidIssuerError, MissingRequiredClaimError, bad algorithm
            raise MalformedTokenError(str(e)) from e
        return decode_claims(payload)
