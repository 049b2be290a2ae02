from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from chatops_rpc.signing import Signer


@dataclass
class RecordingSender:
    sent: list[tuple[str, str]] = field(default_factory=list)
    snippets: list[tuple[str, str]] = field(default_factory=list)

    async def send(self, room_id: str, text: str) -> None:
        self.sent.append((room_id, text))

    async def send_snippet(self, room_id: str, text: str) -> None:
        self.snippets.append((room_id, text))


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(private_key: rsa.RSAPrivateKey) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def signer(private_key: rsa.RSAPrivateKey) -> Signer:
    return Signer(private_key)


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()
