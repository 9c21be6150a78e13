"""
zkwallet core — OAuth-identity wallets on a Sui-style ledger.

Modules:
  - identity, keys, proof        identity claims, key material, addresses
  - storage, session             salts, sessions and pending logins
  - ledger, rpc_client           ledger contract and its JSON-RPC client
  - coin_selection, signer       payment planning and signing strategies
  - history                      transaction history reconciliation
  - wallet                       the WalletService facade
"""

__version__ = "0.1.0"

__all__ = [
    "account",
    "cli",
    "coin_selection",
    "config",
    "errors",
    "history",
    "identity",
    "keys",
    "ledger",
    "logging_config",
    "precision",
    "proof",
    "rpc_client",
    "session",
    "signer",
    "storage",
    "wallet",
]
