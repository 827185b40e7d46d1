# feedbackledger/crypto/envelope.py
"""
Encryption primitives applied to feedback payloads before they reach the ledger.

The record store only relies on the Encryptor protocol: one fallible call that
turns a structured payload into an opaque string. Confidentiality is a
property of whichever implementation is plugged in, not of the store.
"""

import os
from typing import Any, Mapping, Protocol, runtime_checkable

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from feedbackledger.core.canon import canonical_json, parse_json
from feedbackledger.core.encoding import b64url_encode, b64url_decode

FHE_PREFIX = "FHE-"
AESGCM_PREFIX = "AESGCM-"
_NONCE_LEN = 12


@runtime_checkable
class Encryptor(Protocol):
    def encrypt(self, payload: Mapping[str, Any]) -> str:
        ...


class SimulatedFHEEncryptor:
    """
    Placeholder envelope: "FHE-" + base64url(canonical JSON).
    Only encoded, NOT confidential. Kept for compatibility with
    records already written in this format.
    """

    def encrypt(self, payload: Mapping[str, Any]) -> str:
        return FHE_PREFIX + b64url_encode(canonical_json(dict(payload)))

    def decrypt(self, ciphertext: str) -> dict:
        if not ciphertext.startswith(FHE_PREFIX):
            raise ValueError("not a simulated FHE envelope")
        return parse_json(b64url_decode(ciphertext[len(FHE_PREFIX):]))


class AESGCMEncryptor:
    """
    AES-256-GCM envelope: "AESGCM-" + base64url(nonce || ciphertext+tag).
    The optional associated data binds ciphertexts to a deployment/team.
    """

    def __init__(self, key: bytes, associated_data: bytes = b"feedbackledger"):
        if len(key) != 32:
            raise ValueError("AESGCMEncryptor requires a 32 byte key")
        self._aesgcm = AESGCM(key)
        self._associated_data = associated_data

    @classmethod
    def from_b64url(cls, encoded: str) -> "AESGCMEncryptor":
        return cls(b64url_decode(encoded.strip()))

    @staticmethod
    def generate_key() -> bytes:
        return AESGCM.generate_key(bit_length=256)

    def encrypt(self, payload: Mapping[str, Any]) -> str:
        nonce = os.urandom(_NONCE_LEN)
        sealed = self._aesgcm.encrypt(nonce, canonical_json(dict(payload)), self._associated_data)
        return AESGCM_PREFIX + b64url_encode(nonce + sealed)

    def decrypt(self, ciphertext: str) -> dict:
        if not ciphertext.startswith(AESGCM_PREFIX):
            raise ValueError("not an AES-GCM envelope")
        blob = b64url_decode(ciphertext[len(AESGCM_PREFIX):])
        nonce, sealed = blob[:_NONCE_LEN], blob[_NONCE_LEN:]
        return parse_json(self._aesgcm.decrypt(nonce, sealed, self._associated_data))
