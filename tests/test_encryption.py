import pytest
from nacl.pwhash import argon2id

from galerie.core.encryption import EncryptedPayload, decrypt_data, encrypt_data
from galerie.core.errors import InvalidRequestError

from fakes import KEY_A, KEY_B


FAST = {"opslimit": argon2id.OPSLIMIT_MIN, "memlimit": argon2id.MEMLIMIT_MIN}
WALLET_DATA = {"label": "main", "recoveryHint": "blue"}


def test_encrypted_payload_opens_with_same_identifier():
    payload = encrypt_data(WALLET_DATA, KEY_A, **FAST)

    assert "blue" not in payload.ciphertext
    assert decrypt_data(payload, KEY_A, **FAST) == WALLET_DATA


def test_each_encryption_uses_fresh_salt_and_nonce():
    first = encrypt_data(WALLET_DATA, KEY_A, **FAST)
    second = encrypt_data(WALLET_DATA, KEY_A, **FAST)

    assert first.salt != second.salt
    assert first.ciphertext != second.ciphertext


def test_wrong_identifier_is_rejected():
    payload = encrypt_data(WALLET_DATA, KEY_A, **FAST)

    with pytest.raises(InvalidRequestError, match="Failed to decrypt"):
        decrypt_data(payload, KEY_B, **FAST)


def test_tampered_ciphertext_is_rejected():
    payload = encrypt_data(WALLET_DATA, KEY_A, **FAST)
    flipped = "A" if payload.ciphertext[-6] != "A" else "B"
    tampered = EncryptedPayload(
        ciphertext=payload.ciphertext[:-6] + flipped + payload.ciphertext[-5:],
        salt=payload.salt,
    )

    with pytest.raises(InvalidRequestError):
        decrypt_data(tampered, KEY_A, **FAST)


@pytest.mark.parametrize(
    "document",
    [{}, {"encryptedData": "abc"}, {"salt": "abc"}, {"encryptedData": 1, "salt": "abc"}],
)
def test_payload_requires_ciphertext_and_salt(document):
    with pytest.raises(InvalidRequestError):
        EncryptedPayload.from_dict(document)


def test_empty_identifier_is_rejected():
    with pytest.raises(InvalidRequestError):
        encrypt_data(WALLET_DATA, "", **FAST)
