"""
Stellar key encoding and deterministic key derivation.

Identity providers hand back a generic private key (hex, usually 0x-prefixed).
The marketplace needs a Stellar account, so the secret is hashed to an Ed25519
seed and the account id is derived from that seed.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import string
from dataclasses import dataclass, field

from nacl.signing import SigningKey

from .errors import DerivationFailureError


_VERSION_ACCOUNT_ID = 6 << 3   # "G..."
_VERSION_SEED = 18 << 3        # "S..."
_RAW_KEY_LENGTH = 32
_HEX_DIGITS = set(string.hexdigits)


@dataclass(frozen=True)
class DerivedKeypair:
    public_key: str
    signing_key: SigningKey = field(repr=False, compare=False)

    @property
    def secret_seed(self) -> str:
        return encode_secret_seed(bytes(self.signing_key))

    def sign(self, payload: bytes) -> bytes:
        return self.signing_key.sign(payload).signature


def _checksum(payload: bytes) -> bytes:
    # CRC16-XModem, little-endian
    return binascii.crc_hqx(payload, 0).to_bytes(2, "little")


def _encode(version: int, raw: bytes) -> str:
    if len(raw) != _RAW_KEY_LENGTH:
        raise ValueError("Stellar keys are 32 bytes")
    payload = bytes([version]) + raw
    return base64.b32encode(payload + _checksum(payload)).decode("ascii")


def _decode(version: int, value: str) -> bytes:
    if not value or len(value) != 56:
        raise ValueError("Invalid StrKey length")
    try:
        decoded = base64.b32decode(value.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError("Invalid StrKey encoding") from exc
    payload, checksum = decoded[:-2], decoded[-2:]
    if payload[0] != version:
        raise ValueError("Unexpected StrKey version byte")
    if _checksum(payload) != checksum:
        raise ValueError("Invalid StrKey checksum")
    return payload[1:]


def encode_public_key(raw: bytes) -> str:
    return _encode(_VERSION_ACCOUNT_ID, raw)


def decode_public_key(value: str) -> bytes:
    return _decode(_VERSION_ACCOUNT_ID, value)


def encode_secret_seed(raw: bytes) -> str:
    return _encode(_VERSION_SEED, raw)


def decode_secret_seed(value: str) -> bytes:
    return _decode(_VERSION_SEED, value)


def is_valid_public_key(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        decode_public_key(value)
    except ValueError:
        return False
    return True


def format_address(address: str | None) -> str:
    """Shorten an account id for display: GABC...WXYZ."""
    if not address:
        return ""
    if len(address) <= 10:
        return address
    return f"{address[:4]}...{address[-4:]}"


def canonicalize_secret(secret: str) -> bytes:
    """Canonical byte encoding of a provider secret prior to hashing."""
    candidate = secret.strip()
    if candidate[:2].lower() == "0x":
        candidate = candidate[2:]
    if candidate and all(char in _HEX_DIGITS for char in candidate):
        candidate = candidate.lower()
    if not candidate:
        raise DerivationFailureError("Provider secret is empty")
    return candidate.encode("utf-8")


def keypair_from_seed(seed: bytes) -> DerivedKeypair:
    signing_key = SigningKey(seed)
    return DerivedKeypair(
        public_key=encode_public_key(bytes(signing_key.verify_key)),
        signing_key=signing_key,
    )


def derive_keypair(secret: str) -> DerivedKeypair:
    """
    Derive a Stellar keypair from a provider secret.

    Stellar secret seeds (S...) are used as-is. Anything else is canonicalized
    and hashed with SHA-256 into a 32-byte Ed25519 seed, so the same login
    always yields the same account and the secret cannot be recovered from the
    account id.

    Raises:
        DerivationFailureError: secret missing or unusable
    """
    if not isinstance(secret, str):
        raise DerivationFailureError("Provider secret must be a string")

    stripped = secret.strip()
    if stripped.startswith("S") and len(stripped) == 56:
        try:
            return keypair_from_seed(decode_secret_seed(stripped))
        except ValueError:
            pass

    seed = hashlib.sha256(canonicalize_secret(secret)).digest()
    try:
        return keypair_from_seed(seed)
    except Exception as exc:  # noqa: BLE001
        raise DerivationFailureError(f"Could not derive keypair: {exc}") from exc


def generate_keypair() -> DerivedKeypair:
    signing_key = SigningKey.generate()
    return DerivedKeypair(
        public_key=encode_public_key(bytes(signing_key.verify_key)),
        signing_key=signing_key,
    )
