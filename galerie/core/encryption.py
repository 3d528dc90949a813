"""
Symmetric encryption for wallet backups.

The key is stretched from a user identifier (the account id unless the caller
supplies something stronger) with Argon2id, and the payload is sealed with
XSalsa20-Poly1305. The salt travels with the ciphertext so any holder of the
identifier can decrypt.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict

import nacl.utils
from nacl.encoding import Base64Encoder
from nacl.exceptions import CryptoError
from nacl.pwhash import argon2id
from nacl.secret import SecretBox

from .errors import InvalidRequestError


OPSLIMIT = argon2id.OPSLIMIT_INTERACTIVE
MEMLIMIT = argon2id.MEMLIMIT_INTERACTIVE


@dataclass(frozen=True)
class EncryptedPayload:
    ciphertext: str
    salt: str

    def to_dict(self) -> Dict[str, str]:
        return {"encryptedData": self.ciphertext, "salt": self.salt}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedPayload":
        ciphertext = data.get("encryptedData")
        salt = data.get("salt")
        if not isinstance(ciphertext, str) or not isinstance(salt, str):
            raise InvalidRequestError("Backup is missing its encrypted payload")
        return cls(ciphertext=ciphertext, salt=salt)


def _box(user_identifier: str, salt: bytes, opslimit: int, memlimit: int) -> SecretBox:
    if not user_identifier:
        raise InvalidRequestError("An identifier is required to derive the backup key", field_name="user_identifier")
    key = argon2id.kdf(
        SecretBox.KEY_SIZE,
        user_identifier.encode("utf-8"),
        salt,
        opslimit=opslimit,
        memlimit=memlimit,
    )
    return SecretBox(key)


def encrypt_data(
    data: Any,
    user_identifier: str,
    *,
    opslimit: int = OPSLIMIT,
    memlimit: int = MEMLIMIT,
) -> EncryptedPayload:
    """Serialize ``data`` to JSON and seal it under a key derived from ``user_identifier``."""
    salt = nacl.utils.random(argon2id.SALTBYTES)
    box = _box(user_identifier, salt, opslimit, memlimit)
    plaintext = json.dumps(data, separators=(",", ":")).encode("utf-8")
    # nonce is generated by SecretBox and prepended to the ciphertext
    sealed = box.encrypt(plaintext, encoder=Base64Encoder)
    return EncryptedPayload(
        ciphertext=sealed.decode("ascii"),
        salt=base64.b64encode(salt).decode("ascii"),
    )


def decrypt_data(
    payload: EncryptedPayload,
    user_identifier: str,
    *,
    opslimit: int = OPSLIMIT,
    memlimit: int = MEMLIMIT,
) -> Any:
    """
    Reverse ``encrypt_data``.

    Raises:
        InvalidRequestError: wrong identifier, tampered ciphertext or malformed payload
    """
    try:
        salt = base64.b64decode(payload.salt, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidRequestError("Backup salt is not valid base64") from exc
    if len(salt) != argon2id.SALTBYTES:
        raise InvalidRequestError("Backup salt has the wrong length")

    box = _box(user_identifier, salt, opslimit, memlimit)
    try:
        plaintext = box.decrypt(payload.ciphertext.encode("ascii"), encoder=Base64Encoder)
    except (CryptoError, binascii.Error, ValueError) as exc:
        raise InvalidRequestError("Failed to decrypt wallet backup") from exc
    return json.loads(plaintext.decode("utf-8"))
