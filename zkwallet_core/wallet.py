"""
Wallet service — the single entry point for login, balance, send and history.

One ``WalletService`` owns one wallet context: at most one active
session, one ledger client and one account strategy.  All ledger calls
are awaited on the running event loop and bounded by the configured
timeout.  Sends are single-flight per wallet (an ``asyncio.Lock``); balance
and history reads run freely alongside them.

Usage:
    wallet = WalletService.from_config(load_config("zkwallet.toml"))
    attempt = await wallet.begin_login("google")
    # ... redirect the user to attempt.auth_url, receive the verified claim ...
    session = await wallet.complete_login(claim)
    receipt = await wallet.send("0x...", "0.25")
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Mapping
from urllib.parse import urlencode

from zkwallet_core.account import (
    DIRECT,
    PROOF,
    AccountStrategy,
    DirectAccountStrategy,
    DirectMaterial,
    PreparedLogin,
    ProofAccountStrategy,
)
from zkwallet_core.coin_selection import plan_payment
from zkwallet_core.config import WalletAppConfig
from zkwallet_core.errors import (
    ConfigurationError,
    FaucetUnavailableError,
    LedgerExecutionError,
    LoginStateError,
    NotAuthenticatedError,
    SessionExpiredError,
    TransientNetworkError,
    WalletError,
)
from zkwallet_core.history import HistoryReconciler, TransactionRecord, most_recent_first
from zkwallet_core.identity import Provider, decode_claim_token, normalize_identity, parse_provider
from zkwallet_core.keys import (
    EXPORT_KDF_ITERATIONS,
    Ed25519KeyPair,
    export_encrypted,
    import_encrypted,
    normalize_address,
)
from zkwallet_core.ledger import LedgerClient, LedgerView, TransferPlan, bounded
from zkwallet_core.precision import format_amount, to_minimal_units
from zkwallet_core.proof import MockProofService, ProofService
from zkwallet_core.rpc_client import FaucetClient, SuiRpcClient
from zkwallet_core.session import Session, SaltStore, SessionStore
from zkwallet_core.signer import TransactionSigner
from zkwallet_core.storage import KeyValueStore, open_stores

logger = logging.getLogger("zkwallet.wallet")


@dataclass(frozen=True)
class LoginAttempt:
    provider: Provider
    auth_url: str
    state: str
    nonce: str | None = None
    max_epoch: int | None = None


@dataclass(frozen=True)
class TransferReceipt:
    digest: str
    recipient: str
    amount: int
    gas_used: int

    @property
    def gas_used_display(self) -> str:
        return format_amount(self.gas_used)


@dataclass(frozen=True)
class WalletSummary:
    address: str | None
    valid: bool
    balance: int = 0
    coin_count: int = 0
    error: str | None = None

    @property
    def has_coins(self) -> bool:
        return self.coin_count > 0


class WalletService:
    def __init__(
        self,
        config: WalletAppConfig,
        ledger: LedgerClient,
        strategy: AccountStrategy,
        sessions: SessionStore,
        faucet: FaucetClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.ledger = ledger
        self.strategy = strategy
        self.sessions = sessions
        self.faucet = faucet
        self.clock = clock
        timeout = config.network.request_timeout
        self.view = LedgerView(ledger, config.network.coin_type, timeout)
        self.reconciler = HistoryReconciler(
            ledger, config.network.coin_type, config.session.history_page_size, timeout,
        )
        self._send_lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: WalletAppConfig,
        ledger: LedgerClient | None = None,
        prover: ProofService | None = None,
        local: KeyValueStore | None = None,
        ephemeral: KeyValueStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> WalletService:
        if local is None or ephemeral is None:
            local, ephemeral = open_stores(config.storage.backend, config.storage.path)
        sessions = SessionStore(local, ephemeral, clock=clock)

        strategy: AccountStrategy
        if config.wallet.strategy == DIRECT:
            strategy = DirectAccountStrategy()
        elif config.wallet.strategy == PROOF:
            strategy = ProofAccountStrategy(SaltStore(local), prover or MockProofService())
        else:
            raise ConfigurationError(f"Unknown account strategy: {config.wallet.strategy}")

        if ledger is None:
            ledger = SuiRpcClient(config.network.rpc_url, config.network.request_timeout)
        faucet = FaucetClient(config.faucet_url()) if config.faucet_available() else None
        return cls(config, ledger, strategy, sessions, faucet=faucet, clock=clock)

    async def close(self) -> None:
        close = getattr(self.ledger, "close", None)
        if close is not None:
            await close()

    # ===== LOGIN =====

    async def begin_login(self, provider: Provider | str) -> LoginAttempt:
        """Start an OAuth login: prepare strategy state and build the auth URL."""
        p = parse_provider(provider)
        pc = self.config.require_provider(p)
        prepared = await self.strategy.prepare_login(
            self.ledger, self.config.session.max_epoch_window,
            self.config.network.request_timeout,
        )
        state = f"{p.value}-{self.strategy.scheme}-{int(self.clock() * 1000)}"

        params = {
            "client_id": pc.client_id,
            "redirect_uri": self.config.session.redirect_uri,
            "scope": pc.scope,
            "state": state,
        }
        if p is Provider.GOOGLE:
            params["response_type"] = "code"
            if prepared.nonce:
                params["nonce"] = prepared.nonce
        auth_url = f"{pc.auth_url}?{urlencode(params)}"

        fields = dict(prepared.fields, provider=p.value, state=state)
        self.sessions.save_pending(fields, prepared.ephemeral)
        logger.info(f"Initiating {p.value} login ({self.strategy.scheme})")
        return LoginAttempt(
            provider=p,
            auth_url=auth_url,
            state=state,
            nonce=prepared.nonce,
            max_epoch=fields.get("max_epoch"),
        )

    async def complete_login(self, claim: Mapping[str, Any] | str) -> Session:
        """Turn a verified identity claim into an account and an active session."""
        pending = self.sessions.load_pending()
        if not pending or "provider" not in pending:
            raise LoginStateError("No provider information found in session")
        if isinstance(claim, str):
            claim = decode_claim_token(claim)

        try:
            provider = parse_provider(pending["provider"])
            identity = normalize_identity(claim, provider)
            pc = self.config.require_provider(provider)
            prepared = PreparedLogin(fields=pending, ephemeral=self.sessions.load_ephemeral())
            account = await self.strategy.build_account(identity, pc, prepared)
        except WalletError as exc:
            logger.warning(f"Login completion failed: {exc}")
            raise

        session = self.sessions.create(identity, account, self.config.session.ttl_seconds)
        self.sessions.clear_pending()
        logger.info(f"Logged in {identity.email or identity.subject} -> {account.address}")
        return session

    def restore(self) -> Session | None:
        return self.sessions.restore()

    def logout(self) -> None:
        self.sessions.teardown()
        logger.info("Logged out")

    def is_logged_in(self) -> bool:
        return self.sessions.is_active()

    def current_provider(self) -> Provider | None:
        s = self.sessions.current
        return s.identity.provider if s else None

    @property
    def address(self) -> str | None:
        s = self.sessions.current
        return s.address if s else None

    def _active_session(self) -> Session | None:
        s = self.sessions.current
        if s is None:
            return None
        if s.is_expired(self.clock()):
            self.sessions.teardown()
            return None
        return s

    def _require_session(self) -> Session:
        s = self.sessions.current
        if s is None:
            raise NotAuthenticatedError("Not logged in")
        if s.is_expired(self.clock()):
            self.sessions.teardown()
            raise SessionExpiredError("Session expired, log in again")
        return s

    def _signer(self, session: Session) -> TransactionSigner:
        timeout = self.config.network.request_timeout
        return self.strategy.signer_for(
            session.account,
            self.sessions.load_ephemeral(),
            lambda: bounded(self.ledger.current_epoch(), timeout, "current_epoch"),
        )

    # ===== READS =====

    async def balance_units(self) -> int:
        s = self._active_session()
        if s is None:
            return 0
        return await self.view.balance_of(s.address)

    async def balance(self) -> str:
        return format_amount(await self.balance_units())

    async def summary(self) -> WalletSummary:
        s = self._active_session()
        if s is None:
            return WalletSummary(address=None, valid=False, error="No wallet address")
        try:
            coins = await self.view.coins_of(s.address)
        except TransientNetworkError as exc:
            logger.error(f"Wallet check failed for {s.address}: {exc}")
            return WalletSummary(address=s.address, valid=False, error="Address not found on network")
        return WalletSummary(
            address=s.address,
            valid=True,
            balance=sum(c.balance for c in coins),
            coin_count=len(coins),
        )

    async def history(self) -> list[TransactionRecord]:
        s = self._active_session()
        if s is None:
            return []
        return most_recent_first(await self.reconciler.reconcile(s.address))

    # ===== WRITES =====

    async def send(self, recipient: str, amount: str | Decimal) -> TransferReceipt:
        """Send a decimal SUI *amount*; truncated toward zero at MIST precision."""
        return await self.send_units(recipient, to_minimal_units(amount))

    async def send_units(self, recipient: str, amount: int) -> TransferReceipt:
        session = self._require_session()
        to = normalize_address(recipient)
        signer = self._signer(session)
        timeout = self.config.network.request_timeout

        async with self._send_lock:
            try:
                await signer.check_window()
                coins = await self.view.coins_of(session.address)
                payment = plan_payment(amount, coins)
                logger.info(
                    f"Paying {amount} from coin {payment.coin.object_id} "
                    f"({'split' if payment.split else 'whole'}) to {to}"
                )
                gas_price = await bounded(
                    self.ledger.get_reference_gas_price(), timeout, "gas_price",
                )
                tx_bytes = await bounded(
                    self.ledger.build_transaction(TransferPlan(
                        sender=session.address,
                        recipient=to,
                        coin_id=payment.coin.object_id,
                        amount=amount,
                        split=payment.split,
                        gas_price=gas_price,
                        gas_budget=self.config.network.gas_budget,
                    )),
                    timeout,
                    "build_transaction",
                )
                signature = await signer.sign(tx_bytes)
                result = await bounded(
                    self.ledger.execute(tx_bytes, signature), timeout, "execute",
                )
                if not result.succeeded:
                    raise LedgerExecutionError(result.error or "unknown error", result.digest)
            except WalletError as exc:
                logger.warning(f"Send from {session.address} failed: {exc}")
                raise

        logger.info(f"Transaction {result.digest} executed")
        return TransferReceipt(
            digest=result.digest, recipient=to, amount=amount, gas_used=result.gas_used.total,
        )

    async def request_faucet(self) -> dict[str, Any]:
        session = self._require_session()
        if self.faucet is None or not self.config.faucet_available():
            raise FaucetUnavailableError(
                "Faucet is only available on testnet or devnet. "
                f"Current network: {self.config.network_name()}"
            )
        return await self.faucet.request(normalize_address(session.address))

    # ===== KEY EXPORT =====

    def export_private_key(self) -> str | None:
        """Hex private key of a direct-scheme account; None otherwise."""
        s = self.sessions.current
        if s is None or not isinstance(s.account.material, DirectMaterial):
            return None
        return s.account.material.private_key

    def export_encrypted(
        self, passphrase: str, iterations: int = EXPORT_KDF_ITERATIONS,
    ) -> dict | None:
        secret = self.export_private_key()
        if secret is None:
            return None
        envelope = export_encrypted(bytes.fromhex(secret), passphrase, iterations)
        envelope["address"] = self.address
        return envelope

    @staticmethod
    def import_encrypted(envelope: dict, passphrase: str) -> Ed25519KeyPair:
        return Ed25519KeyPair.from_secret(import_encrypted(envelope, passphrase))

    # ===== LINKS =====

    def explorer_url(self, tx_id: str | None = None) -> str:
        if tx_id:
            return self.config.explorer_url("txblock", tx_id)
        if self.address is None:
            return ""
        return self.config.explorer_url("address", self.address)
