"""
Key material and address derivation.

Provides:
  - Ed25519 key pairs (PyNaCl) and the 32-byte address of a public key
  - Deterministic key derivation from an identity (direct scheme)
  - Ephemeral keys, login nonces and per-subject salts (proof scheme)
  - Claim-bound addresses that depend on ``(iss, aud, sub, salt)`` only
  - Passphrase-encrypted export of a raw key (AES-256-GCM)

Addresses are rendered as ``0x`` followed by 64 lowercase hex digits.
"""

from __future__ import annotations

import base64
import hashlib
import os
import re
import secrets

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from zkwallet_core.errors import InvalidAddressFormatError
from zkwallet_core.identity import Identity

# Signature-scheme flags, prefixed to public keys when hashing addresses
# and to serialized signatures.
ED25519_FLAG = 0x00
ZKLOGIN_FLAG = 0x05

# Transaction-data intent: (scope=TransactionData, version=V0, app=Sui)
TRANSACTION_INTENT = bytes([0, 0, 0])

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

_DIRECT_PERSON = b"zkwallet-direct"
_SEED_PERSON = b"zkwallet-seed"
_NONCE_PERSON = b"zkwallet-nonce"


def blake2b256(data: bytes, person: bytes = b"") -> bytes:
    return hashlib.blake2b(data, digest_size=32, person=person).digest()


# ===================================================================
#  Addresses
# ===================================================================

def is_valid_address(address: object) -> bool:
    return isinstance(address, str) and bool(_ADDRESS_RE.match(address))


def normalize_address(address: object) -> str:
    """Validate *address* locally and return it lowercased."""
    if not is_valid_address(address):
        raise InvalidAddressFormatError(address)
    return address.lower()  # type: ignore[union-attr]


def _render(digest: bytes) -> str:
    return "0x" + digest.hex()


def address_from_public_key(public_key: bytes) -> str:
    """Address of an Ed25519 public key: BLAKE2b-256(flag || pk)."""
    return _render(blake2b256(bytes([ED25519_FLAG]) + public_key))


# ===================================================================
#  Ed25519 key pairs
# ===================================================================

class Ed25519KeyPair:
    """Thin wrapper around a PyNaCl signing key."""

    def __init__(self, signing_key: SigningKey):
        self._sk = signing_key

    @classmethod
    def generate(cls) -> Ed25519KeyPair:
        return cls(SigningKey.generate())

    @classmethod
    def from_secret(cls, secret: bytes) -> Ed25519KeyPair:
        """Build from a 32-byte seed; longer secrets keep their first 32 bytes."""
        if len(secret) < 32:
            raise ValueError(
                f"Invalid key length: {len(secret)}, expected at least 32 bytes"
            )
        return cls(SigningKey(bytes(secret[:32])))

    @classmethod
    def from_hex(cls, secret_hex: str) -> Ed25519KeyPair:
        return cls.from_secret(bytes.fromhex(secret_hex.removeprefix("0x")))

    @property
    def secret(self) -> bytes:
        return bytes(self._sk)

    @property
    def public_key(self) -> bytes:
        return bytes(self._sk.verify_key)

    @property
    def address(self) -> str:
        return address_from_public_key(self.public_key)

    def sign(self, message: bytes) -> bytes:
        return bytes(self._sk.sign(message).signature)

    @staticmethod
    def verify(public_key: bytes, message: bytes, signature: bytes) -> bool:
        try:
            VerifyKey(public_key).verify(message, signature)
            return True
        except (BadSignatureError, ValueError):
            return False

    def __repr__(self) -> str:
        return f"Ed25519KeyPair({self.address})"


def intent_digest(tx_bytes: bytes) -> bytes:
    """The 32-byte message actually signed for a transaction."""
    return blake2b256(TRANSACTION_INTENT + tx_bytes)


def serialize_signature(signature: bytes, public_key: bytes) -> str:
    """Base64 of ``flag || signature || public key``."""
    return base64.b64encode(bytes([ED25519_FLAG]) + signature + public_key).decode()


# ===================================================================
#  Direct scheme: identity -> key
# ===================================================================

def direct_seed(identity: Identity) -> bytes:
    """
    32-byte signing seed for *identity*.

    A keyed BLAKE2b over ``provider-subject-email`` with its own
    personalization string, so the same identity maps to the same key
    forever and nothing besides the identity has to be stored.
    """
    material = f"{identity.provider.value}-{identity.subject}-{identity.email}"
    return blake2b256(material.encode("utf-8"), person=_DIRECT_PERSON)


def derive_direct_keypair(identity: Identity) -> Ed25519KeyPair:
    return Ed25519KeyPair.from_secret(direct_seed(identity))


# ===================================================================
#  Proof scheme: salts, nonces and claim-bound addresses
# ===================================================================

def generate_salt() -> str:
    """A random 64-bit salt rendered as a decimal string."""
    return str(secrets.randbits(64))


def generate_randomness() -> str:
    return str(int.from_bytes(os.urandom(16), "big"))


def generate_nonce(ephemeral_public_key: bytes, max_epoch: int, randomness: str) -> str:
    """Bind the ephemeral key and proof window into the OAuth nonce."""
    data = (
        bytes([ED25519_FLAG]) + ephemeral_public_key
        + int(max_epoch).to_bytes(8, "big")
        + int(randomness).to_bytes(32, "big")
    )
    digest = hashlib.blake2b(data, digest_size=20, person=_NONCE_PERSON).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


def address_seed(salt: str, claim_name: str, claim_value: str, audience: str) -> str:
    """Commitment to ``(salt, claim, aud)`` as a decimal string."""
    fields = [str(int(salt)), claim_name, claim_value, audience]
    data = b"".join(len(f.encode()).to_bytes(2, "big") + f.encode() for f in fields)
    return str(int.from_bytes(blake2b256(data, person=_SEED_PERSON), "big"))


def claim_bound_address(issuer: str, seed: str) -> str:
    """Address for a proof-scheme account: BLAKE2b-256(flag || len(iss) || iss || seed)."""
    iss = issuer.encode("utf-8")
    data = (
        bytes([ZKLOGIN_FLAG, len(iss)]) + iss
        + int(seed).to_bytes(32, "big")
    )
    return _render(blake2b256(data))


# ===================================================================
#  Encrypted export (AES-256-GCM, PBKDF2-HMAC-SHA256)
# ===================================================================

EXPORT_VERSION = 1
EXPORT_KDF_ITERATIONS = 600_000


def export_encrypted(secret: bytes, passphrase: str, iterations: int = EXPORT_KDF_ITERATIONS) -> dict:
    """Encrypt a raw secret key into a JSON-compatible envelope."""
    from Crypto.Cipher import AES

    salt = os.urandom(16)
    key = hashlib.pbkdf2_hmac("sha256", passphrase.encode("utf-8"), salt, iterations)
    nonce = os.urandom(12)
    cipher = AES.new(key, AES.MODE_GCM, nonce=nonce)
    ciphertext, tag = cipher.encrypt_and_digest(secret)
    return {
        "version": EXPORT_VERSION,
        "kdf": "pbkdf2-hmac-sha256",
        "kdf_iterations": iterations,
        "salt": salt.hex(),
        "nonce": nonce.hex(),
        "tag": tag.hex(),
        "ciphertext": ciphertext.hex(),
    }


def import_encrypted(data: dict, passphrase: str) -> bytes:
    """Decrypt an envelope from ``export_encrypted``. Raises ValueError on tamper."""
    from Crypto.Cipher import AES

    if data.get("version") != EXPORT_VERSION:
        raise ValueError(f"Unsupported export version: {data.get('version')}")
    key = hashlib.pbkdf2_hmac(
        "sha256",
        passphrase.encode("utf-8"),
        bytes.fromhex(data["salt"]),
        int(data.get("kdf_iterations", EXPORT_KDF_ITERATIONS)),
    )
    cipher = AES.new(key, AES.MODE_GCM, nonce=bytes.fromhex(data["nonce"]))
    return cipher.decrypt_and_verify(
        bytes.fromhex(data["ciphertext"]), bytes.fromhex(data["tag"]),
    )
