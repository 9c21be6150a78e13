"""
Identity normalization.

Each OAuth provider returns a differently shaped profile.  The wallet
works on one canonical ``Identity`` record; two identities are the same
account iff their ``(provider, subject)`` pairs match.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping

from zkwallet_core.errors import InvalidClaimError, UnsupportedProviderError


class Provider(str, Enum):
    GITHUB = "github"
    GOOGLE = "google"


@dataclass(frozen=True)
class Identity:
    """Canonical, immutable view of a verified identity claim."""
    subject: str
    email: str
    provider: Provider
    login: str | None = None
    name: str | None = None
    picture: str | None = None

    @property
    def account_key(self) -> tuple[str, str]:
        return self.provider.value, self.subject

    def same_account(self, other: Identity) -> bool:
        return self.account_key == other.account_key

    def to_dict(self) -> dict:
        d = asdict(self)
        d["provider"] = self.provider.value
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Identity:
        return cls(
            subject=data["subject"],
            email=data.get("email", ""),
            provider=Provider(data["provider"]),
            login=data.get("login"),
            name=data.get("name"),
            picture=data.get("picture"),
        )


def parse_provider(provider: Provider | str) -> Provider:
    try:
        return Provider(provider)
    except ValueError:
        raise UnsupportedProviderError(provider) from None


def normalize_identity(claim: Mapping[str, Any], provider: Provider | str) -> Identity:
    """Map a provider-specific *claim* onto an ``Identity``.

    GitHub profiles carry a numeric ``id`` and ``avatar_url``; Google
    profiles carry ``sub`` and ``picture`` and have no login, so the
    local part of the email stands in for it.
    """
    p = parse_provider(provider)
    email = claim.get("email") or ""

    if p is Provider.GITHUB:
        subject = claim.get("sub")
        if not subject and claim.get("id") is not None:
            subject = str(claim["id"])
        login = claim.get("login")
        picture = claim.get("avatar_url")
    else:
        subject = claim.get("sub")
        login = email.split("@")[0] if email else None
        picture = claim.get("picture")

    if not subject:
        raise InvalidClaimError(f"{p.value} claim has no subject")

    return Identity(
        subject=str(subject),
        email=email,
        provider=p,
        login=login,
        name=claim.get("name"),
        picture=picture,
    )


def decode_claim_token(token: str) -> dict[str, Any]:
    """Decode the base64 JSON profile handed over by the OAuth callback."""
    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.urlsafe_b64decode(padded.replace("+", "-").replace("/", "_"))
        data = json.loads(raw)
    except (binascii.Error, ValueError) as exc:
        raise InvalidClaimError(f"Undecodable claim token: {exc}") from None
    if not isinstance(data, dict):
        raise InvalidClaimError("Claim token does not hold a JSON object")
    return data
