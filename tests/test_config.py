"""
Tests for the versioned config store.
"""

import json
from unittest.mock import Mock, patch

import pytest

from cortex_cli.config import (
    CORTEX_REGISTRY_NAME,
    CURRENT_VERSION,
    Config,
    ConfigEnvelope,
    default_config,
    migrate_v3,
    migrate_v4,
    read_config,
)
from cortex_cli.errors import ConfigParseError, ProfileValidationError


@pytest.fixture
def v3_profile(pat):
    return {**pat, "project": "demo"}


class TestMigration:
    """Test upgrading old config files."""

    def test_v3_config_upgraded_to_latest(self, write_config, v3_profile):
        """A version 3 profile gains the private registry and template config."""
        path = write_config({"version": "3", "profiles": {"default": v3_profile}, "currentProfile": "default"})

        config = read_config()

        assert config.version == CURRENT_VERSION
        stored = config.profiles["default"]
        registry = stored["registries"][CORTEX_REGISTRY_NAME]
        assert registry["url"] == "private-registry.dci-dev.dev-eks.insights.ai"
        assert registry["isCortex"] is True
        assert stored["currentRegistry"] == CORTEX_REGISTRY_NAME
        assert stored["templateConfig"] == {"repo": "CognitiveScale/cortex-code-templates", "branch": "main"}

        on_disk = json.loads(path.read_text())
        assert on_disk["version"] == "5"
        assert on_disk["currentProfile"] == "default"

    def test_migrated_profile_validates(self, write_config, v3_profile):
        write_config({"version": "3", "profiles": {"default": v3_profile}, "currentProfile": "default"})

        profile = read_config().get_profile("default")

        assert profile.url == v3_profile["url"]
        assert profile.project == "demo"
        assert profile.registries[CORTEX_REGISTRY_NAME].is_cortex

    def test_migration_is_idempotent(self, write_config, v3_profile):
        """Reading an already migrated file writes nothing."""
        path = write_config({"version": "3", "profiles": {"default": v3_profile}})
        read_config()
        migrated = path.read_text()

        with patch("cortex_cli.config._write_json") as mock_write:
            config = read_config()

        mock_write.assert_not_called()
        assert path.read_text() == migrated
        assert config.version == CURRENT_VERSION

    def test_v4_config_takes_one_step(self, write_config, profile_attrs):
        """A version 4 file only needs the 4 -> 5 step."""
        v4_profile = {key: value for key, value in profile_attrs.items() if key != "templateConfig"}
        path = write_config({"version": "4", "profiles": {"default": v4_profile}, "currentProfile": "default"})
        step_v3 = Mock()
        step_v4 = Mock(side_effect=migrate_v4)

        with patch.dict("cortex_cli.config.MIGRATIONS", {"3": ("4", step_v3), "4": ("5", step_v4)}):
            config = read_config()

        step_v3.assert_not_called()
        step_v4.assert_called_once()
        assert config.version == "5"
        on_disk = json.loads(path.read_text())
        assert on_disk["version"] == "5"
        assert on_disk["profiles"]["default"]["templateConfig"]["repo"] == "CognitiveScale/cortex-code-templates"
        assert on_disk["profiles"]["default"]["registries"] == v4_profile["registries"]

        with patch("cortex_cli.config._write_json") as mock_write:
            read_config()
        mock_write.assert_not_called()

    def test_migrate_v3_does_not_mutate_input(self, v3_profile):
        payload = {"profiles": {"default": v3_profile}}
        before = json.dumps(payload, sort_keys=True)

        migrated = migrate_v3(payload)

        assert json.dumps(payload, sort_keys=True) == before
        assert CORTEX_REGISTRY_NAME in migrated["profiles"]["default"]["registries"]

    def test_migrate_v3_keeps_existing_registry(self, v3_profile):
        registry = {"name": CORTEX_REGISTRY_NAME, "url": "registry.example.com", "isCortex": True}
        payload = {"profiles": {"default": {**v3_profile, "registries": {CORTEX_REGISTRY_NAME: registry}}}}

        migrated = migrate_v3(payload)

        assert migrated["profiles"]["default"]["registries"][CORTEX_REGISTRY_NAME]["url"] == "registry.example.com"


class TestLegacyReset:
    """Test configs too old to migrate."""

    def test_v2_config_backed_up_and_reset(self, write_config, config_dir, v3_profile, capsys):
        legacy = {"version": "2", "profiles": {"default": v3_profile}}
        write_config(legacy)

        config = read_config()

        assert config.version == CURRENT_VERSION
        assert config.profiles == {}
        backup = config_dir / "config_v2"
        assert json.loads(backup.read_text()) == legacy
        assert json.loads((config_dir / "config").read_text()) == {"version": "5", "profiles": {}}
        assert "Old profile found" in capsys.readouterr().err

    def test_untagged_config_treated_as_version_1(self, write_config, config_dir, v3_profile):
        write_config({"default": v3_profile})

        config = read_config()

        assert config.profiles == {}
        assert (config_dir / "config_v1").exists()

    def test_untagged_envelope(self):
        envelope = ConfigEnvelope.from_json({"default": {"url": "https://example.com"}})

        assert envelope.version == "1"
        assert envelope.payload == {"profiles": {"default": {"url": "https://example.com"}}}


class TestReadWrite:
    """Test reading and saving the config file."""

    def test_missing_config_returns_none(self):
        assert read_config() is None

    def test_malformed_json_raises(self, config_dir):
        config_dir.mkdir(parents=True)
        (config_dir / "config").write_text("{not json")

        with pytest.raises(ConfigParseError):
            read_config()

    def test_undecodable_config_raises(self, config_dir):
        config_dir.mkdir(parents=True)
        (config_dir / "config").write_bytes(b"\xff\xfe{}")

        with pytest.raises(ConfigParseError):
            read_config()

    def test_non_object_raises(self, write_config):
        write_config(["default"])

        with pytest.raises(ConfigParseError):
            read_config()

    def test_save_excludes_token_and_feature_flags(self, config_dir, profile_attrs):
        config = default_config()
        config.profiles["default"] = {
            **profile_attrs,
            "token": "secret-token",
            "featureFlags": {"ga": {"enabled": True}},
        }
        config.current_profile = "default"
        config.save()

        text = (config_dir / "config").read_text()
        assert "secret-token" not in text
        stored = json.loads(text)["profiles"]["default"]
        assert "token" not in stored
        assert "featureFlags" not in stored

    def test_set_profile_never_stores_token(self, profile_attrs):
        config = default_config()

        config.set_profile("default", {**profile_attrs, "token": "secret-token"})

        assert "token" not in config.profiles["default"]
        assert config.profiles["default"]["url"] == profile_attrs["url"]

    def test_saved_config_round_trips(self, profile_attrs):
        config = default_config()
        config.set_profile("default", profile_attrs)
        config.current_profile = "default"
        config.save()

        loaded = read_config()

        assert loaded.current_profile == "default"
        assert loaded.get_profile("default").username == profile_attrs["username"]

    def test_default_config(self):
        config = default_config()

        assert config.version == "5"
        assert config.profiles == {}
        assert config.to_json() == {"version": "5", "profiles": {}}

    def test_get_unknown_profile_returns_none(self):
        assert Config().get_profile("missing") is None


class TestValidation:
    """Test profile validation."""

    def test_invalid_profile_lists_every_field(self):
        config = default_config()

        with pytest.raises(ProfileValidationError) as exc_info:
            config.set_profile("broken", {})

        problems = " ".join(exc_info.value.problems)
        for field in ("url", "username", "jwk", "issuer", "audience"):
            assert f'"{field}"' in problems
        assert "broken" not in config.profiles

    def test_invalid_url_rejected(self, profile_attrs):
        with pytest.raises(ProfileValidationError) as exc_info:
            default_config().set_profile("default", {**profile_attrs, "url": "not-a-url"})

        assert "must be a valid uri" in str(exc_info.value)

    def test_current_registry_must_be_configured(self, profile_attrs):
        with pytest.raises(ProfileValidationError):
            default_config().set_profile("default", {**profile_attrs, "currentRegistry": "nowhere"})

    def test_set_profile_with_project(self, profile_attrs):
        profile = default_config().set_profile("default", profile_attrs, project="other")

        assert profile.project == "other"
