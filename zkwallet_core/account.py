"""
Accounts and the strategies that build them.

An ``Account`` is an address plus the material needed to sign for it.
``AccountStrategy`` has two implementations:

  - ``DirectAccountStrategy``: the key is a pure function of the identity;
    nothing is stored beyond the session itself.
  - ``ProofAccountStrategy``: a fresh ephemeral key per login attempt, a
    proof artifact from a ``ProofService``, and an address bound to
    ``(issuer, audience, subject, salt)`` so it survives key churn.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from zkwallet_core.config import ProviderConfig
from zkwallet_core.errors import LoginStateError, NotAuthenticatedError
from zkwallet_core.identity import Identity
from zkwallet_core.keys import (
    Ed25519KeyPair,
    address_seed,
    claim_bound_address,
    derive_direct_keypair,
    generate_nonce,
    generate_randomness,
)
from zkwallet_core.ledger import LedgerClient, bounded
from zkwallet_core.proof import ProofArtifact, ProofContext, ProofService
from zkwallet_core.session import SaltStore
from zkwallet_core.signer import DirectSigner, EpochSource, ProofSigner, TransactionSigner

logger = logging.getLogger("zkwallet.account")

DIRECT = "direct"
PROOF = "proof"


@dataclass(frozen=True)
class DirectMaterial:
    private_key: str            # hex, 32 bytes

    def to_dict(self) -> dict:
        return {"private_key": self.private_key}


@dataclass(frozen=True)
class ProofMaterial:
    max_epoch: int
    proof: ProofArtifact
    salt: str

    def to_dict(self) -> dict:
        return {"max_epoch": self.max_epoch, "proof": self.proof.to_dict(), "salt": self.salt}


@dataclass(frozen=True)
class Account:
    address: str
    scheme: str
    material: DirectMaterial | ProofMaterial

    def to_dict(self) -> dict:
        return {"address": self.address, "scheme": self.scheme, "material": self.material.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> Account:
        m = data["material"]
        material: DirectMaterial | ProofMaterial
        if data["scheme"] == DIRECT:
            material = DirectMaterial(private_key=m["private_key"])
        else:
            material = ProofMaterial(
                max_epoch=int(m["max_epoch"]),
                proof=ProofArtifact.from_dict(m["proof"]),
                salt=str(m["salt"]),
            )
        return cls(address=data["address"], scheme=data["scheme"], material=material)

    def __repr__(self) -> str:
        return f"Account({self.scheme}, {self.address})"


@dataclass
class PreparedLogin:
    """State a strategy needs carried from login start to completion."""
    fields: dict[str, Any]
    ephemeral: Ed25519KeyPair | None = None

    @property
    def nonce(self) -> str | None:
        return self.fields.get("nonce")


class AccountStrategy(ABC):
    scheme: str = ""

    async def prepare_login(
        self, ledger: LedgerClient, epoch_window: int, timeout: float | None = None,
    ) -> PreparedLogin:
        return PreparedLogin(fields={})

    @abstractmethod
    async def build_account(
        self,
        identity: Identity,
        provider: ProviderConfig,
        pending: PreparedLogin,
    ) -> Account: ...

    @abstractmethod
    def signer_for(
        self,
        account: Account,
        ephemeral: Ed25519KeyPair | None,
        current_epoch: EpochSource,
    ) -> TransactionSigner: ...


class DirectAccountStrategy(AccountStrategy):
    scheme = DIRECT

    async def build_account(
        self,
        identity: Identity,
        provider: ProviderConfig,
        pending: PreparedLogin,
    ) -> Account:
        keypair = derive_direct_keypair(identity)
        logger.info(f"Derived deterministic account for {identity.email or identity.subject}")
        return Account(
            address=keypair.address,
            scheme=DIRECT,
            material=DirectMaterial(private_key=keypair.secret.hex()),
        )

    def signer_for(
        self,
        account: Account,
        ephemeral: Ed25519KeyPair | None,
        current_epoch: EpochSource,
    ) -> TransactionSigner:
        if not isinstance(account.material, DirectMaterial):
            raise LoginStateError(f"A {account.scheme} account cannot sign with direct keys")
        return DirectSigner(Ed25519KeyPair.from_hex(account.material.private_key))


class ProofAccountStrategy(AccountStrategy):
    scheme = PROOF

    def __init__(self, salts: SaltStore, prover: ProofService):
        self.salts = salts
        self.prover = prover

    async def prepare_login(
        self, ledger: LedgerClient, epoch_window: int, timeout: float | None = None,
    ) -> PreparedLogin:
        ephemeral = Ed25519KeyPair.generate()
        epoch = await bounded(ledger.current_epoch(), timeout, "current_epoch")
        max_epoch = int(epoch) + epoch_window
        randomness = generate_randomness()
        nonce = generate_nonce(ephemeral.public_key, max_epoch, randomness)
        return PreparedLogin(
            fields={"max_epoch": max_epoch, "randomness": randomness, "nonce": nonce},
            ephemeral=ephemeral,
        )

    async def build_account(
        self,
        identity: Identity,
        provider: ProviderConfig,
        pending: PreparedLogin,
    ) -> Account:
        if pending.ephemeral is None or "max_epoch" not in pending.fields:
            raise LoginStateError("Missing ephemeral key for this login attempt")

        salt = self.salts.salt_for(identity)
        seed = address_seed(salt, "sub", identity.subject, provider.client_id)
        address = claim_bound_address(provider.issuer, seed)

        context = ProofContext(
            issuer=provider.issuer,
            audience=provider.client_id,
            ephemeral_public_key=pending.ephemeral.public_key,
            max_epoch=int(pending.fields["max_epoch"]),
            randomness=str(pending.fields.get("randomness", "0")),
            nonce=str(pending.fields.get("nonce", "")),
        )
        proof = await self.prover.prove(identity, salt, context)
        if proof.address_seed != seed:
            raise LoginStateError("Proof does not commit to this account's address seed")

        logger.info(f"Resolved claim-bound account {address} (max epoch {context.max_epoch})")
        return Account(
            address=address,
            scheme=PROOF,
            material=ProofMaterial(max_epoch=context.max_epoch, proof=proof, salt=salt),
        )

    def signer_for(
        self,
        account: Account,
        ephemeral: Ed25519KeyPair | None,
        current_epoch: EpochSource,
    ) -> TransactionSigner:
        if not isinstance(account.material, ProofMaterial):
            raise LoginStateError(f"A {account.scheme} account carries no proof material")
        if ephemeral is None:
            raise NotAuthenticatedError("Ephemeral key unavailable, log in again to sign")
        return ProofSigner(
            ephemeral=ephemeral,
            proof=account.material.proof,
            max_epoch=account.material.max_epoch,
            current_epoch=current_epoch,
        )
