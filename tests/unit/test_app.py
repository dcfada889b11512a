# Assumptions:
# - Using FastAPI TestClient for HTTP level tests
# - Public keys are served by the fake key server transport
# - The service signs with the same RSA key the fake key server publishes

import jwt
import pytest
from fastapi.testclient import TestClient

from asap_auth.application.key_derivation import generate_key
from asap_auth.auth.errors import ForbiddenError, InvalidSignatureOrClaimsError
from asap_auth.auth.signing import SignOptions
from asap_auth.config.settings import ServiceSettings
from asap_auth.presentation import app as app_module
from asap_auth.presentation.app import build_components, create_app

BASE_URL = "https://keys.example.com"


@pytest.fixture
def settings_factory(tmp_path, primary_key_pair):
    key_file = tmp_path / "asap.pem"
    key_file.write_bytes(primary_key_pair[0])

    def factory(**overrides) -> ServiceSettings:
        values = {
            "asap_jwt_kid": "any-kid",
            "asap_signing_key_file": str(key_file),
            "system_asap_base_url_mappings": [{"baseUrl": BASE_URL}],
            "system_asap_jwt_accepted_hook_iss": "issuerA",
            "system_asap_jwt_aud": "system-aud",
            "key_gen_salt": "test-salt",
            "request_retry_count": 0,
        }
        values.update(overrides)
        return ServiceSettings(_env_file=None, **values)

    return factory


@pytest.fixture
def published(key_server, primary_key_pair):
    key_server.publish(BASE_URL, "any-kid", primary_key_pair[1])
    return key_server


@pytest.fixture
def app(settings_factory, published):
    return create_app(settings_factory(), transport=published.transport)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers(signer):
    return {"Authorization": f"Bearer {signer.server_token()}"}


def decode(token: str, public_pem: bytes, audience: str) -> dict:
    return jwt.decode(token, public_pem, algorithms=["RS256"], audience=audience)


class TestAuthorization:
    """Test cases for the ASAP authorization boundary"""

    def test_health_needs_no_token(self, client, published):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.text == "OK"
        assert published.requests == []

    def test_missing_token_is_401(self, client):
        response = client.get("/generate/server")

        assert response.status_code == 401
        assert response.content == b""

    def test_invalid_token_is_401(self, client):
        response = client.get("/generate/server", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_wrong_audience_is_401(self, client, signer):
        token = signer.server_token(options=SignOptions(audience="jitsi"))

        response = client.get("/generate/server", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_unknown_issuer_is_401(self, client, signer, published):
        token = signer.server_token(options=SignOptions(issuer="nobody"))

        response = client.get("/generate/server", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert published.requests == []

    def test_key_fetch_failure_is_401(self, client, signer):
        token = signer.server_token(options=SignOptions(keyid="unpublished-kid"))

        response = client.get("/generate/server", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_valid_token_passes(self, client, auth_headers, published):
        response = client.get("/generate/server", headers=auth_headers)

        assert response.status_code == 200
        assert len(published.requests) == 1

    def test_public_key_is_cached_across_requests(self, client, auth_headers, published):
        client.get("/generate/server", headers=auth_headers)
        client.get("/generate/component", headers=auth_headers)

        assert len(published.requests) == 1

    def test_configured_exempt_path(self, settings_factory, published):
        app = create_app(settings_factory(no_auth_paths="/generate/server"), transport=published.transport)

        with TestClient(app) as client:
            assert client.get("/generate/server").status_code == 200
            assert client.get("/generate/server/").status_code != 200
            assert client.get("/generate/component").status_code == 401

    def test_unprotected_mode_accepts_any_request(self, settings_factory, published):
        app = create_app(settings_factory(protected_api=False), transport=published.transport)

        with TestClient(app) as client:
            response = client.get("/generate/server", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 200
        assert published.requests == []

    def test_forbidden_error_is_403(self, app, auth_headers):
        @app.get("/generate/forbidden")
        async def forbidden():
            raise ForbiddenError("not allowed")

        response = TestClient(app).get("/generate/forbidden", headers=auth_headers)

        assert response.status_code == 403
        body = response.json()
        assert body["status"] == 403
        assert body["messageKey"] == "forbidden"
        assert body["path"] == "/generate/forbidden"

    def test_unexpected_error_is_500(self, app, auth_headers):
        @app.get("/generate/broken")
        async def broken():
            raise RuntimeError("boom")

        response = TestClient(app).get("/generate/broken", headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["messageKey"] == "internal.server.errors"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-Id": "req-42"})

        assert response.headers["X-Request-Id"] == "req-42"

    def test_request_id_is_generated(self, client):
        response = client.get("/health")

        assert response.headers["X-Request-Id"]


class TestBuildComponents:
    """Test cases for wiring the core from settings"""

    @pytest.mark.asyncio
    async def test_jitsi_only_issuer_is_verified(self, settings_factory, published, signer):
        settings = settings_factory(jitsi_asap_jwt_aud="jitsi", jitsi_asap_jwt_accepted_iss="chat")
        components = build_components(settings, transport=published.transport)
        token = signer.client_token({"room": "*"}, SignOptions(audience="jitsi", issuer="chat"))

        claims = await components.verifier.verify_jitsi(token)

        assert claims["iss"] == "chat"
        assert claims["room"] == "*"

    @pytest.mark.asyncio
    async def test_jitsi_only_issuer_is_not_a_system_caller(self, settings_factory, published, signer):
        settings = settings_factory(jitsi_asap_jwt_aud="jitsi", jitsi_asap_jwt_accepted_iss="chat")
        components = build_components(settings, transport=published.transport)
        token = signer.server_token(options=SignOptions(issuer="chat"))

        with pytest.raises(InvalidSignatureOrClaimsError):
            await components.verifier.verify_system(token)

    def test_startup_log_names_host(self, settings_factory, published, monkeypatch):
        events = []

        class RecordingLogger:
            def info(self, event, **kwargs):
                events.append((event, kwargs))

        monkeypatch.setattr(app_module, "logger", RecordingLogger())

        create_app(settings_factory(hostname="token-gen-1"), transport=published.transport)

        assert events[0][1]["hostname"] == "token-gen-1"


class TestGenerateRoutes:
    """Test cases for the /generate endpoints"""

    def test_server_token(self, client, auth_headers, primary_key_pair):
        response = client.get("/generate/server", headers=auth_headers)

        token = response.json()["token"]
        claims = decode(token, primary_key_pair[1], "jitsi-token-generator")

        assert claims["iss"] == "jitsi-token-generator"
        assert jwt.get_unverified_header(token)["kid"] == "any-kid"
        assert claims["exp"] - claims["iat"] == 3600

    def test_server_token_query_overrides(self, client, auth_headers, primary_key_pair):
        response = client.get(
            "/generate/server",
            params={"audience": "custom", "expiresIn": "2 hours"},
            headers=auth_headers,
        )

        claims = decode(response.json()["token"], primary_key_pair[1], "custom")

        assert claims["exp"] - claims["iat"] == 7200

    def test_server_token_body_overrides_query(self, client, auth_headers, primary_key_pair):
        response = client.post(
            "/generate/server",
            params={"audience": "from-query"},
            json={"audience": "from-body"},
            headers=auth_headers,
        )

        assert decode(response.json()["token"], primary_key_pair[1], "from-body")["aud"] == "from-body"

    def test_component_token(self, client, auth_headers, primary_key_pair):
        response = client.post(
            "/generate/component",
            json={"room": "lobby", "domain": "meet.example.com", "tokenType": "JIGASI"},
            headers=auth_headers,
        )

        claims = decode(response.json()["token"], primary_key_pair[1], "jigasi.meet.example.com")

        assert claims["iss"] == "jaas-components"
        assert claims["sub"] == "meet.example.com"
        assert claims["room"] == "lobby"

    def test_client_token(self, client, auth_headers, primary_key_pair):
        response = client.post(
            "/generate/client",
            params={"sub": "acme", "confId": "true", "e2eeKey": "true"},
            json={"room": "lobby", "context": {"user": {"name": "a"}}},
            headers=auth_headers,
        )

        body = response.json()
        claims = decode(body["token"], primary_key_pair[1], "jitsi")

        assert response.status_code == 200
        assert body["tenant"] == "acme"
        assert body["confId"] == generate_key("acme/lobby", b"test-salt")
        assert body["e2eeKey"] == generate_key("lobby", b"test-salt")
        assert claims["room"] == body["confId"]
        assert claims["iss"] == "chat"

    def test_malformed_json_is_400(self, client, auth_headers):
        response = client.post(
            "/generate/server",
            content=b"{not json",
            headers={**auth_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["messageKey"] == "invalid_request"
        assert body["path"] == "/generate/server"

    def test_non_object_body_is_400(self, client, auth_headers):
        response = client.post("/generate/component", json=["room"], headers=auth_headers)

        assert response.status_code == 400

    def test_invalid_override_is_400(self, client, auth_headers):
        response = client.post("/generate/server", json={"expiresIn": "whenever"}, headers=auth_headers)

        assert response.status_code == 400
