"""VAPID key encoding, validation, and generation."""

import base64
import binascii
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric import ec

from pushbeacon.client.errors import ConfigurationError

# Uncompressed P-256 point: 0x04 marker + 32-byte X + 32-byte Y
APPLICATION_SERVER_KEY_LENGTH = 65
UNCOMPRESSED_POINT_MARKER = 0x04


@dataclass(frozen=True)
class VapidKeyPair:
    """A VAPID key pair as unpadded base64url strings."""

    public_key: str
    private_key: str


def encode_base64url(raw: bytes) -> str:
    """Encode bytes as unpadded base64url."""
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_base64url(value: str) -> bytes:
    """Decode base64url (or standard base64), normalizing '=' padding."""
    value = value.strip().rstrip("=")
    value = value.replace("+", "-").replace("/", "_")
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def normalize_key(value: str) -> str:
    """Return the canonical unpadded base64url form of a key string."""
    return encode_base64url(decode_base64url(value))


def decode_application_server_key(key: str | None) -> bytes:
    """Decode and validate a VAPID public key.

    The key must decode to exactly 65 bytes starting with the uncompressed
    EC point marker. Anything else raises ConfigurationError so the caller
    never hands a malformed key to the push platform.
    """
    if not key or not isinstance(key, str):
        raise ConfigurationError("VAPID public key is missing")

    try:
        raw = decode_base64url(key)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"VAPID public key is not valid base64url: {e}") from e

    if len(raw) != APPLICATION_SERVER_KEY_LENGTH:
        raise ConfigurationError(
            f"VAPID public key must decode to {APPLICATION_SERVER_KEY_LENGTH} bytes, "
            f"got {len(raw)}"
        )
    if raw[0] != UNCOMPRESSED_POINT_MARKER:
        raise ConfigurationError(
            f"VAPID public key must start with 0x04 (uncompressed point), got {raw[0]:#04x}"
        )
    return raw


def generate_vapid_key_pair() -> VapidKeyPair:
    """Generate a P-256 key pair for a new website."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    public_numbers = private_key.public_key().public_numbers()

    public_bytes = (
        bytes([UNCOMPRESSED_POINT_MARKER])
        + public_numbers.x.to_bytes(32, "big")
        + public_numbers.y.to_bytes(32, "big")
    )
    private_bytes = private_key.private_numbers().private_value.to_bytes(32, "big")

    return VapidKeyPair(
        public_key=encode_base64url(public_bytes),
        private_key=encode_base64url(private_bytes),
    )
