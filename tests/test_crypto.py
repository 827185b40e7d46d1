# tests/test_crypto.py
import re
from dataclasses import replace

import pytest

from feedbackledger.crypto.envelope import (
    AESGCMEncryptor,
    Encryptor,
    SimulatedFHEEncryptor,
)
from feedbackledger.crypto.keys import SignerKey, verify_write


PAYLOAD = {"reviewee": "0xbb", "category": "technical", "projectId": "P1", "comments": "good work"}


def test_signer_account_format():
    signer = SignerKey.generate()
    assert re.fullmatch(r"0x[0-9a-f]{40}", signer.account)
    assert signer.account != SignerKey.generate().account


def test_private_key_roundtrip_keeps_account(tmp_path):
    signer = SignerKey.generate()
    restored = SignerKey.from_private_b64url(signer.private_key_b64url())
    assert restored.account == signer.account

    path = signer.save(tmp_path / "keys" / "signer.key")
    assert SignerKey.load(path).account == signer.account


def test_verify_only_key_cannot_sign():
    signer = SignerKey.generate()
    verifier = SignerKey.from_public_b64url(signer.public_key_b64url())
    assert not verifier.can_sign
    with pytest.raises(ValueError, match="cannot sign"):
        verifier.sign_bytes(b"data")

    sig = signer.sign_bytes(b"data")
    assert verifier.verify_bytes(sig, b"data")
    assert not verifier.verify_bytes(sig, b"tampered")


def test_write_proof_binds_key_and_value():
    signer = SignerKey.generate()
    proof = signer.sign_write("record:1-a", b'{"x":1}')

    assert proof.account == signer.account
    assert verify_write(proof, "record:1-a", b'{"x":1}')
    assert not verify_write(proof, "record:1-b", b'{"x":1}')
    assert not verify_write(proof, "record:1-a", b'{"x":2}')


def test_write_proof_rejects_mismatched_account():
    signer = SignerKey.generate()
    proof = signer.sign_write("k", b"v")
    forged = replace(proof, account=SignerKey.generate().account)
    assert not verify_write(forged, "k", b"v")
    assert not verify_write(replace(proof, public_key="not-a-key"), "k", b"v")


def test_simulated_fhe_envelope():
    enc = SimulatedFHEEncryptor()
    assert isinstance(enc, Encryptor)

    ciphertext = enc.encrypt(PAYLOAD)
    assert ciphertext.startswith("FHE-")
    assert "good work" not in ciphertext
    assert enc.decrypt(ciphertext) == PAYLOAD


def test_aesgcm_roundtrip_and_fresh_nonce():
    enc = AESGCMEncryptor(AESGCMEncryptor.generate_key())
    first = enc.encrypt(PAYLOAD)
    second = enc.encrypt(PAYLOAD)

    assert first.startswith("AESGCM-")
    assert first != second
    assert enc.decrypt(first) == PAYLOAD


def test_aesgcm_wrong_key_fails():
    sealed = AESGCMEncryptor(AESGCMEncryptor.generate_key()).encrypt(PAYLOAD)
    other = AESGCMEncryptor(AESGCMEncryptor.generate_key())
    with pytest.raises(Exception):
        other.decrypt(sealed)


def test_aesgcm_requires_32_byte_key():
    with pytest.raises(ValueError, match="32 byte"):
        AESGCMEncryptor(b"short")
