"""Request signing for schema fetches and method invocations.

Every outbound request carries a nonce, a timestamp and an RSA/SHA-256
signature over the canonical string::

    <url>\\n<nonce>\\n<timestamp>\\n<body>

Remote verifiers rebuild the same string, so its layout and the header
names below are part of the wire contract.
"""

from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .errors import ConfigError

DEFAULT_KEY_ID = "hubotkey"
NONCE_BYTES = 32

NONCE_HEADER = "Chatops-Nonce"
TIMESTAMP_HEADER = "Chatops-Timestamp"
SIGNATURE_HEADER = "Chatops-Signature"


@dataclass(frozen=True, slots=True)
class SignedRequest:
    nonce: str
    timestamp: str
    signature: str
    signature_header: str

    def headers(self) -> dict[str, str]:
        return {
            NONCE_HEADER: self.nonce,
            TIMESTAMP_HEADER: self.timestamp,
            SIGNATURE_HEADER: self.signature_header,
        }


def canonical_string(url: str, nonce: str, timestamp: str, body: str | None) -> str:
    return f"{url}\n{nonce}\n{timestamp}\n{body or ''}"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def load_private_key(pem: str | bytes | None) -> rsa.RSAPrivateKey:
    if pem is None or (isinstance(pem, str) and not pem.strip()):
        raise ConfigError("no private key configured; set CHATOPS_RPC_PRIVATE_KEY")

    data = pem.encode("utf-8") if isinstance(pem, str) else pem
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as error:
        raise ConfigError(f"unable to load private key: {error}") from error

    if not isinstance(key, rsa.RSAPrivateKey):
        raise ConfigError("private key must be an RSA key")
    return key


class Signer:
    """Signs outbound requests with one process-wide private key."""

    def __init__(self, private_key: rsa.RSAPrivateKey | None, *, key_id: str = DEFAULT_KEY_ID) -> None:
        if private_key is None:
            raise ConfigError("no private key configured; set CHATOPS_RPC_PRIVATE_KEY")
        self._private_key = private_key
        self.key_id = key_id

    @classmethod
    def from_pem(cls, pem: str | bytes | None, *, key_id: str = DEFAULT_KEY_ID) -> Signer:
        return cls(load_private_key(pem), key_id=key_id)

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self._private_key.public_key()

    def sign(self, url: str, body: str | None = None) -> SignedRequest:
        nonce = base64.b64encode(secrets.token_bytes(NONCE_BYTES)).decode("ascii")
        timestamp = _utc_timestamp()
        payload = canonical_string(url, nonce, timestamp, body).encode("utf-8")
        raw_signature = self._private_key.sign(payload, padding.PKCS1v15(), hashes.SHA256())
        signature = base64.b64encode(raw_signature).decode("ascii")
        return SignedRequest(
            nonce=nonce,
            timestamp=timestamp,
            signature=signature,
            signature_header=f"Signature keyid={self.key_id},signature={signature}",
        )


def parse_signature_header(header: str) -> dict[str, str]:
    scheme, _, params = header.partition(" ")
    if scheme != "Signature":
        return {}
    parsed: dict[str, str] = {}
    for item in params.split(","):
        key, separator, value = item.partition("=")
        if separator:
            parsed[key.strip()] = value.strip()
    return parsed


def verify_signature(
    public_key: rsa.RSAPublicKey,
    *,
    url: str,
    nonce: str,
    timestamp: str,
    body: str | None,
    signature_header: str,
) -> bool:
    """Check a signature the way a remote endpoint would."""
    signature = parse_signature_header(signature_header).get("signature")
    if not signature:
        return False
    try:
        raw_signature = base64.b64decode(signature)
        public_key.verify(
            raw_signature,
            canonical_string(url, nonce, timestamp, body).encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except (InvalidSignature, ValueError):
        return False
    return True
