# feedbackledger/crypto/keys.py
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from feedbackledger.core.canon import value_hash
from feedbackledger.core.encoding import b64url_encode, b64url_decode
from feedbackledger.core.types import Proof


def write_digest(key: str, value: bytes) -> bytes:
    """Bytes a wallet signs for a ledger write: the key bound to the value hash."""
    return f"{key}\n{value_hash(value)}".encode("utf-8")


class SignerKey:
    """
    Ed25519 key pair standing in for a wallet account.
    A verify-only instance (public key, no private key) can check proofs.
    """

    def __init__(self, private_key: Optional[Ed25519PrivateKey] = None,
                 public_key: Optional[Ed25519PublicKey] = None):
        if private_key is None and public_key is None:
            raise ValueError("SignerKey needs a private or a public key")
        self._private = private_key
        self._public = public_key or private_key.public_key()

    @classmethod
    def generate(cls) -> "SignerKey":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_b64url(cls, encoded: str) -> "SignerKey":
        raw = b64url_decode(encoded.strip())
        return cls(Ed25519PrivateKey.from_private_bytes(raw))

    @classmethod
    def from_public_b64url(cls, encoded: str) -> "SignerKey":
        raw = b64url_decode(encoded.strip())
        return cls(public_key=Ed25519PublicKey.from_public_bytes(raw))

    @classmethod
    def load(cls, path: str | Path) -> "SignerKey":
        return cls.from_private_b64url(Path(path).read_text(encoding="utf-8"))

    def save(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.private_key_b64url() + "\n", encoding="utf-8")
        path.chmod(0o600)
        return path

    @property
    def can_sign(self) -> bool:
        return self._private is not None

    def _public_raw(self) -> bytes:
        return self._public.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def public_key_b64url(self) -> str:
        return b64url_encode(self._public_raw())

    def private_key_b64url(self) -> str:
        if self._private is None:
            raise ValueError("verify-only key has no private part")
        raw = self._private.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return b64url_encode(raw)

    @property
    def account(self) -> str:
        """0x-prefixed 20-byte account id derived from the public key."""
        return "0x" + hashlib.sha256(self._public_raw()).digest()[-20:].hex()

    def sign_bytes(self, data: bytes) -> bytes:
        if self._private is None:
            raise ValueError("verify-only key cannot sign")
        return self._private.sign(data)

    def verify_bytes(self, signature: bytes, data: bytes) -> bool:
        try:
            self._public.verify(signature, data)
            return True
        except InvalidSignature:
            return False

    def sign_write(self, key: str, value: bytes) -> Proof:
        signature = self.sign_bytes(write_digest(key, value))
        return Proof(
            created=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            account=self.account,
            public_key=self.public_key_b64url(),
            proof_value=b64url_encode(signature),
        )


def verify_write(proof: Proof, key: str, value: bytes) -> bool:
    """Check a write proof against the key/value it claims to cover."""
    try:
        signer = SignerKey.from_public_b64url(proof.public_key)
        signature = b64url_decode(proof.proof_value)
    except ValueError:
        return False
    if signer.account != proof.account:
        return False
    return signer.verify_bytes(signature, write_digest(key, value))
