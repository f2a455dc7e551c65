# src/ledgertest/crypto/keys.py
from __future__ import annotations

import hashlib
import logging
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from pydantic import BaseModel, ConfigDict

from ledgertest.runtime.errors import abort_setup

log = logging.getLogger("ledgertest.crypto")

ED25519 = "ed25519"
SECP256K1 = "secp256k1"

# Order of the secp256k1 group.
_SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAEDCE6AF48A03BBFD25E8CD0364141


def _sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()


def address_hash(b: bytes) -> bytes:
    """20-byte address derived from arbitrary bytes (truncated SHA-256)."""
    return _sha256(b)[:20]


def _label_seed(scheme: str, label: str) -> bytes:
    return _sha256((f"ledgertest-test-{scheme}:" + (label or "")).encode("utf-8"))


class PubKey(BaseModel):
    """Public key as it appears in genesis: scheme name + hex key bytes."""

    model_config = ConfigDict(frozen=True)

    type: str
    key: str

    def raw(self) -> bytes:
        return bytes.fromhex(self.key)

    def address(self) -> bytes:
        return address_hash(self.raw())

    def verify(self, message: bytes, sig: bytes) -> bool:
        try:
            if self.type == ED25519:
                Ed25519PublicKey.from_public_bytes(self.raw()).verify(sig, message)
                return True
            if self.type == SECP256K1:
                pk = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), self.raw())
                pk.verify(sig, message, ec.ECDSA(hashes.SHA256()))
                return True
        except (InvalidSignature, ValueError):
            return False
        return False


class PrivValidator:
    """Mock private validator: an in-memory Ed25519 consensus key."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._sk = private_key
        pk_b = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self._pub = PubKey(type=ED25519, key=pk_b.hex())

    @classmethod
    def generate(cls) -> "PrivValidator":
        try:
            return cls(Ed25519PrivateKey.generate())
        except Exception as e:
            abort_setup(log, f"failed to generate validator key: {e}", scheme=ED25519)

    @classmethod
    def from_label(cls, label: str) -> "PrivValidator":
        """Deterministically derive a validator key from a stable label. TEST ONLY."""
        return cls(Ed25519PrivateKey.from_private_bytes(_label_seed(ED25519, label)))

    def get_pub_key(self) -> PubKey:
        return self._pub

    def address(self) -> bytes:
        return self._pub.address()

    def sign(self, message: bytes) -> bytes:
        return self._sk.sign(message)


class AccountKey:
    """secp256k1 account key used for funded and sender accounts."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey) -> None:
        self._sk = private_key
        pk_b = private_key.public_key().public_bytes(Encoding.X962, PublicFormat.CompressedPoint)
        self._pub = PubKey(type=SECP256K1, key=pk_b.hex())

    @classmethod
    def generate(cls) -> "AccountKey":
        try:
            return cls(ec.generate_private_key(ec.SECP256K1()))
        except Exception as e:
            abort_setup(log, f"failed to generate account key: {e}", scheme=SECP256K1)

    @classmethod
    def from_label(cls, label: str) -> "AccountKey":
        """Deterministically derive an account key from a stable label. TEST ONLY."""
        scalar = int.from_bytes(_label_seed(SECP256K1, label), "big") % (_SECP256K1_N - 1) + 1
        return cls(ec.derive_private_key(scalar, ec.SECP256K1()))

    def pub_key(self) -> PubKey:
        return self._pub

    def address(self) -> bytes:
        return self._pub.address()

    def sign(self, message: bytes) -> bytes:
        return self._sk.sign(message, ec.ECDSA(hashes.SHA256()))


def pub_key_address_string(pk: Optional[PubKey]) -> str:
    """Upper-case hex address, the key used for signer maps."""
    if pk is None:
        return ""
    return pk.address().hex().upper()
