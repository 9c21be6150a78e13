"""
TOML-based configuration for the zkwallet core.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from zkwallet_core.config import load_config
    cfg = load_config("zkwallet.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from zkwallet_core.errors import ConfigurationError, UnsupportedProviderError
from zkwallet_core.identity import Provider

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib  # type: ignore[import]
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[import,no-redef]


DEVNET_RPC_URL = "https://fullnode.devnet.sui.io:443"


@dataclass
class ProviderConfig:
    """OAuth client settings for one identity provider."""
    client_id: str = ""
    auth_url: str = ""
    scope: str = ""
    issuer: str = ""


def _github() -> ProviderConfig:
    return ProviderConfig(
        auth_url="https://github.com/login/oauth/authorize",
        scope="user:email",
        issuer="https://github.com",
    )


def _google() -> ProviderConfig:
    return ProviderConfig(
        auth_url="https://accounts.google.com/o/oauth2/v2/auth",
        scope="openid email profile",
        issuer="https://accounts.google.com",
    )


@dataclass
class ProvidersConfig:
    github: ProviderConfig = field(default_factory=_github)
    google: ProviderConfig = field(default_factory=_google)


@dataclass
class NetworkConfig:
    """Ledger endpoint and transaction defaults."""
    rpc_url: str = DEVNET_RPC_URL
    coin_type: str = "0x2::sui::SUI"
    gas_budget: int = 10_000_000        # 0.01 SUI
    request_timeout: float = 15.0       # seconds, applied to every ledger call
    faucet_url: str = ""                # empty = derive from rpc_url


@dataclass
class SessionConfig:
    """Session lifetime and proof-window settings."""
    ttl_seconds: int = 24 * 60 * 60
    # Epochs after the login epoch during which the proof stays valid.
    max_epoch_window: int = 10
    history_page_size: int = 20
    redirect_uri: str = "http://localhost:3000/api/auth/callback"


@dataclass
class WalletConfig:
    """Which account strategy builds accounts: ``direct`` or ``proof``."""
    strategy: str = "proof"


@dataclass
class StorageConfig:
    """Persistence settings."""
    backend: str = "memory"             # "memory" or "sqlite"
    path: str = "data/zkwallet.db"


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class WalletAppConfig:
    """Top-level configuration container."""
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # ---- providers ----

    def provider(self, provider: Provider | str) -> ProviderConfig:
        """Return the settings for *provider* (unchecked)."""
        try:
            p = Provider(provider)
        except ValueError:
            raise UnsupportedProviderError(provider) from None
        return getattr(self.providers, p.value)

    def is_provider_configured(self, provider: Provider | str) -> bool:
        return bool(self.provider(provider).client_id)

    def available_providers(self) -> list[Provider]:
        """Providers whose client id is set, in declaration order."""
        return [p for p in Provider if self.is_provider_configured(p)]

    def require_provider(self, provider: Provider | str) -> ProviderConfig:
        """Return the settings for *provider*, failing if it cannot be used."""
        pc = self.provider(provider)
        if not pc.client_id:
            raise ConfigurationError(f"{Provider(provider).value} client ID not configured")
        return pc

    # ---- network ----

    def is_testnet(self) -> bool:
        return "testnet" in self.network.rpc_url

    def is_devnet(self) -> bool:
        return "devnet" in self.network.rpc_url

    def network_name(self) -> str:
        if self.is_testnet():
            return "Testnet"
        if self.is_devnet():
            return "Devnet"
        return "Mainnet"

    def faucet_available(self) -> bool:
        return self.is_testnet() or self.is_devnet()

    def faucet_url(self) -> str:
        if self.network.faucet_url:
            return self.network.faucet_url
        if not self.faucet_available():
            return ""
        return f"https://faucet.{self.network_name().lower()}.sui.io/v2/gas"

    def explorer_url(self, kind: str, ident: str) -> str:
        """Explorer link for an ``address`` or a ``txblock``."""
        network = self.network_name().lower()
        return f"https://explorer.sui.io/{kind}/{ident}?network={network}"


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> WalletAppConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        ZKWALLET_GITHUB_CLIENT_ID -> providers.github.client_id
        ZKWALLET_GOOGLE_CLIENT_ID -> providers.google.client_id
        ZKWALLET_RPC_URL          -> network.rpc_url
        ZKWALLET_TIMEOUT          -> network.request_timeout
        ZKWALLET_STRATEGY         -> wallet.strategy
        ZKWALLET_DB_PATH          -> storage.path  (switches backend to sqlite)
        ZKWALLET_LOG_LEVEL        -> logging.level
        ZKWALLET_LOG_FMT          -> logging.format
    """
    cfg = WalletAppConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            providers = data.get("providers", {})
            for name in ("github", "google"):
                if name in providers:
                    _merge(getattr(cfg.providers, name), providers[name])
            for section_name, section_dc in [
                ("network", cfg.network),
                ("session", cfg.session),
                ("wallet", cfg.wallet),
                ("storage", cfg.storage),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("ZKWALLET_GITHUB_CLIENT_ID"):
        cfg.providers.github.client_id = v
    if v := os.environ.get("ZKWALLET_GOOGLE_CLIENT_ID"):
        cfg.providers.google.client_id = v
    if v := os.environ.get("ZKWALLET_RPC_URL"):
        cfg.network.rpc_url = v
    if v := os.environ.get("ZKWALLET_TIMEOUT"):
        cfg.network.request_timeout = float(v)
    if v := os.environ.get("ZKWALLET_STRATEGY"):
        cfg.wallet.strategy = v.lower()
    if v := os.environ.get("ZKWALLET_DB_PATH"):
        cfg.storage.path = v
        cfg.storage.backend = "sqlite"
    if v := os.environ.get("ZKWALLET_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("ZKWALLET_LOG_FMT"):
        cfg.logging.format = v

    return cfg
