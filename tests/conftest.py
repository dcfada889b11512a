import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from asap_auth.auth.public_keys import hash_kid
from asap_auth.auth.signing import SigningIdentity, SigningKeyRing, TokenSigner


def _generate_key_pair() -> tuple[bytes, bytes]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


@pytest.fixture(scope="session")
def primary_key_pair():
    """RSA key pair of the process signing identity"""
    return _generate_key_pair()


@pytest.fixture(scope="session")
def component_key_pair():
    """Second RSA key pair held in the signing key ring"""
    return _generate_key_pair()


@pytest.fixture
def signing_identity():
    return SigningIdentity(issuer="issuerA", audience="system-aud", key_id="any-kid")


@pytest.fixture
def signer(signing_identity, primary_key_pair, component_key_pair):
    """Signer whose ring also holds the component key"""
    key_ring = SigningKeyRing(primary_key_pair[0], {"component-kid": component_key_pair[0]})
    return TokenSigner(signing_identity, key_ring)


class FakeKeyServer:
    """Serves PEM keys at <base_url>/<sha256(kid)>.pem and records requests"""

    def __init__(self):
        self.keys: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def publish(self, base_url: str, kid: str, pem: bytes) -> str:
        url = f"{base_url}/{hash_kid(kid)}.pem"
        self.keys[url] = pem
        return url

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with)

        pem = self.keys.get(str(request.url))
        if pem is None:
            return httpx.Response(404)
        return httpx.Response(200, content=pem)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def key_server():
    return FakeKeyServer()


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
