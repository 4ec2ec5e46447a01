"""
Shared fixtures for Cortex CLI tests.

Every test runs with a clean environment and its own config directory.
"""

import base64
import json
from unittest.mock import Mock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from typer.testing import CliRunner

from cortex_cli import utils
from cortex_cli.config import CORTEX_REGISTRY_NAME, cortex_registry_for, default_template_config

CORTEX_ENV_VARS = [
    "CORTEX_CONFIG_DIR",
    "CORTEX_URI",
    "CORTEX_URL",
    "CORTEX_TOKEN",
    "CORTEX_PROJECT",
    "CORTEX_TOKEN_SILENT",
    "CORTEX_FEATURE_FLAGS",
    "CORTEX_SKIP_INIT_PROFILE",
    "ALL_GA_FEATURES_ENABLED",
    "PREVIEW_FEATURES_ENABLED",
    "CORTEX_DEBUG",
]

CORTEX_URL = "https://api.dci-dev.dev-eks.insights.ai"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in CORTEX_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    directory = tmp_path / ".cortex"
    monkeypatch.setenv("CORTEX_CONFIG_DIR", str(directory))
    return directory


@pytest.fixture(autouse=True)
def reset_output_format():
    utils.set_output_format(utils.OutputFormat.TABLE)
    yield
    utils.set_output_format(utils.OutputFormat.TABLE)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def signing_key():
    return Ed25519PrivateKey.generate()


@pytest.fixture
def jwk(signing_key):
    """An Ed25519 private JWK like the ones in personal access tokens."""
    private = signing_key.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption()
    )
    public = signing_key.public_key().public_bytes(
        serialization.Encoding.Raw,
        serialization.PublicFormat.Raw
    )
    return {
        "kty": "OKP",
        "crv": "Ed25519",
        "x": _b64url(public),
        "d": _b64url(private),
        "alg": "EdDSA",
        "kid": "test-key",
    }


@pytest.fixture
def pat(jwk):
    """Contents of a personal access token file."""
    return {
        "url": CORTEX_URL,
        "username": "cortex@example.com",
        "jwk": jwk,
        "issuer": "cognitivescale.com",
        "audience": "cortex",
    }


@pytest.fixture
def pat_file(tmp_path, pat):
    path = tmp_path / "pat.json"
    path.write_text(json.dumps(pat))
    return path


@pytest.fixture
def profile_attrs(pat):
    """A valid version 5 profile as stored on disk."""
    return {
        **pat,
        "project": "test-project",
        "registries": {CORTEX_REGISTRY_NAME: cortex_registry_for(pat["url"])},
        "currentRegistry": CORTEX_REGISTRY_NAME,
        "templateConfig": default_template_config(),
    }


@pytest.fixture
def write_config(config_dir):
    """Write a raw config file and return its path."""
    def _write(data):
        config_dir.mkdir(parents=True, exist_ok=True)
        path = config_dir / "config"
        path.write_text(json.dumps(data))
        return path
    return _write


@pytest.fixture
def configured(write_config, profile_attrs):
    """A version 5 config with a single current profile named default."""
    return write_config({
        "version": "5",
        "profiles": {"default": profile_attrs},
        "currentProfile": "default",
    })


@pytest.fixture
def side_loaded_env(monkeypatch):
    """Token and flags supplied by the environment, so no Info call is made."""
    monkeypatch.setenv("CORTEX_TOKEN_SILENT", "side-loaded-token")
    monkeypatch.setenv("CORTEX_FEATURE_FLAGS", json.dumps({"ga": {"enabled": True, "features": {}}}))


@pytest.fixture
def mock_api_response():
    """Create a mock HTTP response."""
    def _create(status_code=200, json_data=None):
        mock = Mock()
        mock.status_code = status_code
        mock.json.return_value = json_data if json_data is not None else {}
        mock.text = str(json_data) if json_data else ""
        return mock
    return _create
