"""
Transaction signing.

Two strategies produce the signature string handed to the ledger:

  - ``DirectSigner`` signs the intent digest of the transaction bytes with
    the account key; that signature alone authorises execution.
  - ``ProofSigner`` signs with the ephemeral key and wraps the result in a
    ``CompositeSignature`` together with the proof artifact and the proof
    window's ``max_epoch``.  Signing is refused once the ledger's current
    epoch has moved past ``max_epoch``.
"""

from __future__ import annotations

import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable

from zkwallet_core.errors import ExpiredProofWindowError
from zkwallet_core.keys import (
    ZKLOGIN_FLAG,
    Ed25519KeyPair,
    intent_digest,
    serialize_signature,
)
from zkwallet_core.proof import ProofArtifact

logger = logging.getLogger("zkwallet.signer")

EpochSource = Callable[[], Awaitable[int]]


class TransactionSigner(ABC):
    """Signs built transaction bytes for one account."""

    scheme: str = ""

    async def check_window(self) -> None:
        """Raise if the signer can no longer produce a valid signature."""

    @abstractmethod
    async def sign(self, tx_bytes: bytes) -> str:
        """Return the serialized signature for *tx_bytes*."""


class DirectSigner(TransactionSigner):
    scheme = "direct"

    def __init__(self, keypair: Ed25519KeyPair):
        self.keypair = keypair

    async def sign(self, tx_bytes: bytes) -> str:
        sig = self.keypair.sign(intent_digest(tx_bytes))
        return serialize_signature(sig, self.keypair.public_key)


@dataclass(frozen=True)
class CompositeSignature:
    """Proof artifact + proof window + inner ephemeral-key signature."""
    proof: ProofArtifact
    max_epoch: int
    user_signature: str

    def serialize(self) -> str:
        body = json.dumps(
            {
                "inputs": self.proof.to_dict(),
                "maxEpoch": self.max_epoch,
                "userSignature": self.user_signature,
            },
            sort_keys=True,
            separators=(",", ":"),
        ).encode("utf-8")
        return base64.b64encode(bytes([ZKLOGIN_FLAG]) + body).decode()

    @classmethod
    def deserialize(cls, encoded: str) -> CompositeSignature:
        raw = base64.b64decode(encoded)
        if not raw or raw[0] != ZKLOGIN_FLAG:
            raise ValueError("Not a composite signature")
        body = json.loads(raw[1:])
        return cls(
            proof=ProofArtifact.from_dict(body["inputs"]),
            max_epoch=int(body["maxEpoch"]),
            user_signature=body["userSignature"],
        )

    def verify_inner(self, tx_bytes: bytes) -> bool:
        """Check the embedded ephemeral-key signature against *tx_bytes*."""
        raw = base64.b64decode(self.user_signature)
        sig, pub = raw[1:65], raw[65:]
        return Ed25519KeyPair.verify(pub, intent_digest(tx_bytes), sig)


class ProofSigner(TransactionSigner):
    scheme = "proof"

    def __init__(
        self,
        ephemeral: Ed25519KeyPair,
        proof: ProofArtifact,
        max_epoch: int,
        current_epoch: EpochSource,
    ):
        self.ephemeral = ephemeral
        self.proof = proof
        self.max_epoch = max_epoch
        self._current_epoch = current_epoch

    async def check_window(self) -> None:
        epoch = await self._current_epoch()
        if epoch > self.max_epoch:
            logger.warning(f"Proof window closed at epoch {epoch} (max {self.max_epoch})")
            raise ExpiredProofWindowError(epoch, self.max_epoch)

    async def sign(self, tx_bytes: bytes) -> str:
        await self.check_window()
        inner = self.ephemeral.sign(intent_digest(tx_bytes))
        composite = CompositeSignature(
            proof=self.proof,
            max_epoch=self.max_epoch,
            user_signature=serialize_signature(inner, self.ephemeral.public_key),
        )
        return composite.serialize()
