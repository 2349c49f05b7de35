"""
HTTP boundary tests for POST /validate-activation-key.

Every verification failure must produce the same 400 body; the reason is
logged but never returned. A missing or empty file is reported
separately as "No file uploaded".
"""

import base64
import logging

import pytest
from fastapi.testclient import TestClient

from activator.app.core.config import Settings
from activator.app.main import create_app
from activator.app.services.issuer import encode_envelope, sign_license_data
from activator.app.services.keys import PublicKeyError

from activator.tests.fixtures.keys import (
    PRO_LICENSE_DATA,
    flip_signature_byte,
    raw_envelope_key,
    rsa_private_key,
    signed_activation_key,
    write_public_key,
)

ENDPOINT = "/validate-activation-key"

INVALID = {"success": False, "error": "Invalid Activation Key"}
NO_FILE = {"success": False, "error": "No file uploaded"}


@pytest.fixture
def client(tmp_path):
    settings = Settings(
        _env_file=None,
        public_key_path=write_public_key(tmp_path),
        max_key_size_kb=4,
    )
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def _upload(client: TestClient, content: bytes, **kwargs):
    return client.post(
        ENDPOINT,
        files={"activationKey": ("activation.key", content, "application/octet-stream")},
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Success
# ---------------------------------------------------------------------------

def test_valid_activation_key_returns_license(client):
    response = _upload(client, signed_activation_key())

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {"plan": "pro", "seats": 5}}


def test_same_key_verifies_twice(client):
    key = signed_activation_key()

    first = _upload(client, key)
    second = _upload(client, key)

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()


# ---------------------------------------------------------------------------
# Uniform rejection
# ---------------------------------------------------------------------------

def test_tampered_signature_is_rejected(client):
    signature = sign_license_data(PRO_LICENSE_DATA, rsa_private_key())
    key = encode_envelope(PRO_LICENSE_DATA, flip_signature_byte(signature))

    response = _upload(client, key)

    assert response.status_code == 400
    assert response.json() == INVALID


@pytest.mark.parametrize(
    "content",
    [
        b"%%% not base64 %%%",
        base64.b64encode(b"not json at all"),
        raw_envelope_key({"licenseData": PRO_LICENSE_DATA}),
        raw_envelope_key({"signature": "AAAA"}),
        b"\xff\xfe\xfd",
        signed_activation_key("not json, but signed"),
        signed_activation_key(name="attacker"),
    ],
)
def test_all_failures_share_one_response(client, content):
    response = _upload(client, content)

    assert response.status_code == 400
    assert response.json() == INVALID


def test_failure_kind_is_logged_not_returned(client, caplog):
    caplog.set_level(logging.INFO, logger="activator.api")

    response = _upload(client, base64.b64encode(b"not json at all"))

    assert response.json() == INVALID
    assert "malformed_envelope" not in response.text

    rejected = [r for r in caplog.records if r.getMessage() == "activation_key_rejected"]
    assert len(rejected) == 1
    assert rejected[0].failure == "malformed_envelope"


def test_unexpected_error_collapses_to_invalid_key(client, monkeypatch):
    def _boom(raw_bytes, public_key):
        raise TypeError("unexpected")

    monkeypatch.setattr(
        "activator.app.api.routes.verify_activation_key",
        _boom,
    )

    response = _upload(client, signed_activation_key())

    assert response.status_code == 400
    assert response.json() == INVALID


# ---------------------------------------------------------------------------
# Missing / empty / oversized upload
# ---------------------------------------------------------------------------

def test_request_without_file_reports_no_file(client):
    response = client.post(ENDPOINT)

    assert response.status_code == 400
    assert response.json() == NO_FILE


def test_file_under_other_field_reports_no_file(client):
    response = client.post(
        ENDPOINT,
        files={"license": ("activation.key", signed_activation_key(), "text/plain")},
    )

    assert response.status_code == 400
    assert response.json() == NO_FILE


def test_unparseable_multipart_body_reports_no_file(client):
    response = client.post(
        ENDPOINT,
        content=b"garbage",
        headers={
            "Content-Type": "multipart/form-data",
            "X-Correlation-ID": "trace-multipart",
        },
    )

    assert response.status_code == 400
    assert response.json() == NO_FILE
    assert response.headers["X-Correlation-ID"] == "trace-multipart"


def test_unknown_route_keeps_error_shape(client):
    response = client.get("/docs")

    assert response.status_code == 404
    assert response.json()["success"] is False
    assert "X-Correlation-ID" in response.headers


def test_plain_form_field_reports_no_file(client):
    response = client.post(
        ENDPOINT,
        data={"activationKey": signed_activation_key().decode("ascii")},
    )

    assert response.status_code == 400
    assert response.json() == NO_FILE


def test_empty_file_reports_no_file(client):
    response = _upload(client, b"")

    assert response.status_code == 400
    assert response.json() == NO_FILE


def test_oversized_file_is_rejected(client):
    response = _upload(client, b"A" * (4 * 1024 + 1))

    assert response.status_code == 413
    assert response.json() == {
        "success": False,
        "error": "Activation key file too large",
    }


# ---------------------------------------------------------------------------
# Correlation IDs
# ---------------------------------------------------------------------------

def test_correlation_id_is_echoed(client):
    response = _upload(
        client,
        signed_activation_key(),
        headers={"X-Correlation-ID": "trace-123"},
    )

    assert response.headers["X-Correlation-ID"] == "trace-123"


def test_correlation_id_is_generated_when_absent_or_oversized(client):
    response = _upload(
        client,
        b"garbage",
        headers={"X-Correlation-ID": "x" * 200},
    )

    assert response.status_code == 400
    correlation_id = response.headers["X-Correlation-ID"]
    assert correlation_id and correlation_id != "x" * 200


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

def test_startup_fails_without_public_key(tmp_path):
    settings = Settings(_env_file=None, public_key_path=tmp_path / "missing.pem")

    with pytest.raises(PublicKeyError):
        with TestClient(create_app(settings)):
            pass


def test_no_other_routes_are_exposed(client):
    assert client.get("/docs").status_code == 404
    assert client.get("/openapi.json").status_code == 404
    assert client.get(ENDPOINT).status_code == 405
