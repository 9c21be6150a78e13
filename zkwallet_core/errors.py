"""
Error taxonomy for the zkwallet core.

Read paths (balance, history) catch ``TransientNetworkError`` at the
ledger-view boundary and degrade to defaults.  Write paths (send, login
completion) always propagate one of these typed failures to the caller.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for every failure raised by the wallet core."""


class ConfigurationError(WalletError):
    """A provider or network setting required for the operation is missing."""


class UnsupportedProviderError(WalletError, ValueError):
    def __init__(self, provider: object):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


class InvalidAddressFormatError(WalletError, ValueError):
    def __init__(self, address: object):
        super().__init__(f"Invalid address format: {address!r}")
        self.address = address


class InvalidAmountError(WalletError, ValueError):
    """Amount is malformed, zero or negative."""


class InsufficientBalanceError(WalletError):
    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Insufficient balance: requested {requested} but only "
            f"{available} available"
        )
        self.requested = requested
        self.available = available


class InsufficientContiguousFundsError(WalletError):
    """No single coin covers the amount; merging coins is not supported."""

    def __init__(self, requested: int, largest: int):
        super().__init__(
            f"No single coin holds {requested} (largest is {largest}). "
            "Coin merging is not supported, try sending a smaller amount."
        )
        self.requested = requested
        self.largest = largest


class ExpiredProofWindowError(WalletError):
    def __init__(self, current_epoch: int, max_epoch: int):
        super().__init__(
            f"Proof window closed: current epoch {current_epoch} is past "
            f"max epoch {max_epoch}. Log in again."
        )
        self.current_epoch = current_epoch
        self.max_epoch = max_epoch


class SessionExpiredError(WalletError):
    """The session's expiry time has passed."""


class NotAuthenticatedError(WalletError):
    """A wallet action was attempted without an active session."""


class LoginStateError(WalletError):
    """Login completion was attempted without a matching pending login."""


class LedgerExecutionError(WalletError):
    """The ledger executed the transaction but reported a non-success status."""

    def __init__(self, reason: str, digest: str = ""):
        super().__init__(f"Transaction failed: {reason}")
        self.reason = reason
        self.digest = digest


class TransientNetworkError(WalletError, ConnectionError):
    """A read against the remote ledger or faucet could not be completed."""


class FaucetUnavailableError(WalletError):
    """The faucet only exists on devnet and testnet."""


class FaucetRateLimitError(WalletError):
    """The faucet answered HTTP 429."""


class InvalidClaimError(WalletError, ValueError):
    """The identity claim lacks a subject or cannot be decoded."""
