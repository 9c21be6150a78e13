"""
Session and salt persistence.

``SaltStore`` keeps one random salt per ``(provider, subject)`` in the
durable scope; it is created on first login and reused forever after,
which keeps claim-bound addresses stable while ephemeral keys churn.

``SessionStore`` owns the single active session of a wallet context.
The session record lives in the durable scope; the pending login and the
ephemeral key live in the ephemeral scope, which ``teardown`` wipes.
Salts are never touched by ``teardown``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from zkwallet_core.identity import Identity
from zkwallet_core.keys import Ed25519KeyPair, generate_salt
from zkwallet_core.storage import KeyValueStore

if TYPE_CHECKING:
    from zkwallet_core.account import Account

logger = logging.getLogger("zkwallet.session")

SESSION_KEY = "wallet_session"
PENDING_KEY = "pending_login"
EPHEMERAL_KEY = "ephemeral_key"


class SaltStore:
    """Per-subject salts; never regenerated for a known subject."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @staticmethod
    def _key(provider: str, subject: str) -> str:
        return f"salt:{provider}:{subject}"

    def get(self, provider: str, subject: str) -> str | None:
        return self._store.get(self._key(provider, subject))

    def salt_for(self, identity: Identity) -> str:
        provider, subject = identity.account_key
        key = self._key(provider, subject)
        salt = self._store.get(key)
        if salt is None:
            salt = generate_salt()
            self._store.set(key, salt)
            logger.info(f"Created salt for {provider} subject {subject}")
        return salt


@dataclass(frozen=True)
class Session:
    account: Account
    identity: Identity
    expires_at: float
    created_at: float = 0.0

    @property
    def address(self) -> str:
        return self.account.address

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "account": self.account.to_dict(),
            "identity": self.identity.to_dict(),
            "expires_at": self.expires_at,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Session:
        from zkwallet_core.account import Account

        return cls(
            account=Account.from_dict(data["account"]),
            identity=Identity.from_dict(data["identity"]),
            expires_at=float(data["expires_at"]),
            created_at=float(data.get("created_at", 0.0)),
        )


class SessionStore:
    def __init__(
        self,
        local: KeyValueStore,
        ephemeral: KeyValueStore,
        clock: Callable[[], float] = time.time,
    ):
        self.local = local
        self.ephemeral = ephemeral
        self.clock = clock
        self.current: Session | None = None

    # ---- lifecycle ----

    def create(self, identity: Identity, account: Account, ttl_seconds: float) -> Session:
        """Persist a new session, superseding any active one."""
        now = self.clock()
        if self.current is not None and not self.current.identity.same_account(identity):
            logger.info(f"Superseding session for {self.current.address}")
        session = Session(
            account=account, identity=identity,
            expires_at=now + ttl_seconds, created_at=now,
        )
        self.local.set(SESSION_KEY, session.to_dict())
        self.current = session
        return session

    def restore(self) -> Session | None:
        """Load the persisted session; an expired one is torn down instead."""
        data = self.local.get(SESSION_KEY)
        if data is None:
            self.current = None
            return None
        try:
            session = Session.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Discarding unreadable session record: {exc}")
            self.teardown()
            return None
        if session.is_expired(self.clock()):
            logger.info(f"Session for {session.address} expired")
            self.teardown()
            return None
        self.current = session
        logger.info(f"Session restored for {session.identity.email} -> {session.address}")
        return session

    def teardown(self) -> None:
        """Drop the session and all ephemeral material; salts survive."""
        self.current = None
        self.local.delete(SESSION_KEY)
        self.ephemeral.clear()

    def is_active(self) -> bool:
        return self.current is not None and self.clock() < self.current.expires_at

    # ---- pending login / ephemeral key ----

    def save_pending(self, fields: dict[str, Any], ephemeral: Ed25519KeyPair | None) -> None:
        self.ephemeral.set(PENDING_KEY, fields)
        if ephemeral is not None:
            self.ephemeral.set(EPHEMERAL_KEY, ephemeral.secret.hex())
        else:
            self.ephemeral.delete(EPHEMERAL_KEY)

    def load_pending(self) -> dict[str, Any] | None:
        return self.ephemeral.get(PENDING_KEY)

    def clear_pending(self) -> None:
        self.ephemeral.delete(PENDING_KEY)

    def load_ephemeral(self) -> Ed25519KeyPair | None:
        secret = self.ephemeral.get(EPHEMERAL_KEY)
        return Ed25519KeyPair.from_hex(secret) if secret else None
