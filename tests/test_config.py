# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for client settings (config.py)."""
from __future__ import annotations

import logging

import pytest
import yaml

from plumlightpad.config import ClientSettings, credentials_from_env
from plumlightpad.const import API_BASE_URL, DEFAULT_PORT


class TestClientSettings:
    """Tests for loading and saving settings."""

    def test_defaults(self):
        settings = ClientSettings()
        assert settings.api_base_url == API_BASE_URL
        assert settings.port == DEFAULT_PORT
        assert settings.encrypted
        assert not settings.verify_certificate

    def test_missing_file_gives_defaults(self, tmp_path):
        assert ClientSettings.load(tmp_path / "absent.yaml") == ClientSettings()

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        settings = ClientSettings(house_id="house-7", command_timeout=1.5, encrypted=False)
        settings.save(path)

        assert yaml.safe_load(path.read_text())["house_id"] == "house-7"
        assert ClientSettings.load(path) == settings

    def test_partial_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("port: 9443\n")
        settings = ClientSettings.load(path)
        assert settings.port == 9443
        assert settings.connect_timeout == ClientSettings().connect_timeout

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert ClientSettings.load(path) == ClientSettings()

    def test_unknown_keys_warned(self, tmp_path, caplog):
        path = tmp_path / "config.yaml"
        path.write_text("port: 1\nflux_capacitor: true\n")
        with caplog.at_level(logging.WARNING):
            settings = ClientSettings.load(path)
        assert settings.port == 1
        assert "flux_capacitor" in caplog.text

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="YAML mapping"):
            ClientSettings.load(path)

    def test_endpoint(self):
        settings = ClientSettings(port=1234, encrypted=False, verify_certificate=True)
        endpoint = settings.endpoint("10.0.0.5", lightpad_id="lp", load_id="ll")
        assert endpoint.address == "10.0.0.5:1234"
        assert endpoint.lightpad_id == "lp"
        assert endpoint.load_id == "ll"
        assert not endpoint.encrypted
        assert endpoint.verify_certificate


class TestCredentialsFromEnv:
    """Credentials only ever come from the environment."""

    def test_both_set(self, monkeypatch):
        monkeypatch.setenv("PLUM_EMAIL", "me@example.com")
        monkeypatch.setenv("PLUM_PASSWORD", "secret")
        assert credentials_from_env() == ("me@example.com", "secret")

    def test_missing_password(self, monkeypatch):
        monkeypatch.setenv("PLUM_EMAIL", "me@example.com")
        monkeypatch.delenv("PLUM_PASSWORD", raising=False)
        assert credentials_from_env() is None

    def test_never_saved(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PLUM_PASSWORD", "secret")
        path = tmp_path / "config.yaml"
        ClientSettings().save(path)
        assert "secret" not in path.read_text()
