"""
Proof artifacts for the ephemeral-key scheme.

The wallet never generates zero-knowledge proofs itself.  It asks a
``ProofService`` for an artifact and embeds that artifact, unchanged,
in the composite signature.  ``MockProofService`` returns a placeholder
whose proof points are dummies but whose ``address_seed`` is real, so
addresses and signatures can be assembled end to end; a deployment
substitutes a service backed by a genuine prover.
"""

from __future__ import annotations

import base64
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from zkwallet_core.identity import Identity
from zkwallet_core.keys import address_seed


@dataclass(frozen=True)
class ProofContext:
    """Everything about the login attempt a prover needs besides the claim."""
    issuer: str
    audience: str
    ephemeral_public_key: bytes
    max_epoch: int
    randomness: str
    nonce: str


@dataclass
class ProofArtifact:
    proof_points: dict[str, Any]
    iss_base64_details: dict[str, Any]
    header_base64: str
    address_seed: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> ProofArtifact:
        return cls(
            proof_points=data["proof_points"],
            iss_base64_details=data["iss_base64_details"],
            header_base64=data["header_base64"],
            address_seed=str(data["address_seed"]),
        )


class ProofService(Protocol):
    async def prove(
        self, identity: Identity, salt: str, context: ProofContext,
    ) -> ProofArtifact: ...


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode()


@dataclass
class MockProofService:
    """Placeholder prover; its artifacts are not accepted by a real network."""
    header: dict = field(default_factory=lambda: {"alg": "RS256", "typ": "JWT"})

    async def prove(
        self, identity: Identity, salt: str, context: ProofContext,
    ) -> ProofArtifact:
        tag = identity.provider.value
        return ProofArtifact(
            proof_points={
                "a": [f"mock_proof_a_{tag}"],
                "b": [[f"mock_proof_b_{tag}"]],
                "c": [f"mock_proof_c_{tag}"],
            },
            iss_base64_details={"value": _b64(context.issuer), "index_mod_4": 0},
            header_base64=_b64(json.dumps(self.header, separators=(",", ":"))),
            address_seed=address_seed(salt, "sub", identity.subject, context.audience),
        )
