"""Tests for completion settings persistence and normalization."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from inkline.services.settings import (
    DEFAULT_MODEL,
    CompletionSettings,
    SecretVault,
    SettingsStore,
    redact_secret,
)


def test_defaults_match_documented_values() -> None:
    settings = CompletionSettings()

    assert settings.enabled
    assert settings.model == DEFAULT_MODEL
    assert settings.debounce_ms == 400
    assert settings.max_context_lines == 50
    assert settings.max_context_chars == 800
    assert settings.cache_capacity == 50
    assert settings.timeout_ms == 10_000
    assert settings.max_output_tokens == 50
    assert settings.temperature == pytest.approx(0.1)


def test_normalized_clamps_out_of_range_values() -> None:
    settings = CompletionSettings(
        debounce_ms=1,
        timeout_ms=999_999,
        max_retries=99,
        cache_capacity=-4,
        temperature=9.0,
        max_context_chars="bogus",  # type: ignore[arg-type]
    ).normalized()

    assert settings.debounce_ms == 40
    assert settings.timeout_ms == 30_000
    assert settings.max_retries == 5
    assert settings.cache_capacity == 1
    assert settings.temperature == 2.0
    assert settings.max_context_chars == 64


def test_client_settings_projection() -> None:
    settings = CompletionSettings(api_key="key", timeout_ms=2_500, default_headers={"X-Test": "1"})

    client_settings = settings.to_client_settings()

    assert client_settings.api_key == "key"
    assert client_settings.request_timeout == pytest.approx(2.5)
    assert client_settings.default_headers == {"X-Test": "1"}
    assert settings.debounce_seconds == pytest.approx(0.4)


def test_save_encrypts_api_key(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    store.save(CompletionSettings(api_key="secret-key", model="mixtral"))

    payload = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
    assert "secret-key" not in json.dumps(payload)
    assert "api_key" not in payload
    assert payload["api_key_ciphertext"].startswith("fernet:")
    assert payload["version"] == 1

    loaded = SettingsStore(tmp_path / "settings.json").load()
    assert loaded.api_key == "secret-key"
    assert loaded.model == "mixtral"


def test_load_without_file_returns_defaults(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "missing.json").load()

    assert settings == CompletionSettings().normalized()


def test_legacy_plaintext_key_is_migrated(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"api_key": "plain-key", "model": "legacy"}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.api_key == "plain-key"
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert "api_key" not in payload
    assert payload["api_key_ciphertext"].startswith("fernet:")


def test_invalid_json_falls_back_to_defaults(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.model == DEFAULT_MODEL
    assert "not valid JSON" in caplog.text


def test_unknown_fields_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"model": "m", "theme": "dark", "version": 1}), encoding="utf-8")

    assert SettingsStore(path).load().model == "m"


def test_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GROQ_API_KEY", "groq-key")
    monkeypatch.setenv("INKLINE_MODEL", "env-model")
    monkeypatch.setenv("INKLINE_ENABLED", "off")
    monkeypatch.setenv("INKLINE_DEBOUNCE_MS", "250")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.api_key == "groq-key"
    assert settings.model == "env-model"
    assert not settings.enabled
    assert settings.debounce_ms == 250


def test_inkline_key_wins_over_provider_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INKLINE_API_KEY", "primary")
    monkeypatch.setenv("GROQ_API_KEY", "secondary")

    assert SettingsStore(tmp_path / "settings.json").load().api_key == "primary"


def test_invalid_integer_override_is_ignored(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("INKLINE_TIMEOUT_MS", "soon")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.timeout_ms == 10_000
    assert "not a valid integer" in caplog.text


def test_runtime_overrides_are_normalized(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load(overrides={"debounce_ms": 5, "model": None})

    assert settings.debounce_ms == 40
    assert settings.model == DEFAULT_MODEL


def test_vault_rejects_unknown_prefix(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "settings.key")

    with pytest.raises(ValueError):
        vault.decrypt("rot13:abc")


def test_vault_rejects_corrupt_token(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "settings.key")

    with pytest.raises(ValueError):
        vault.decrypt("fernet:not-a-token")


def test_vault_round_trip_reuses_key_file(tmp_path: Path) -> None:
    key_path = tmp_path / "settings.key"
    token = SecretVault(key_path=key_path).encrypt("abc123")

    assert key_path.exists()
    assert SecretVault(key_path=key_path).decrypt(token) == "abc123"
    assert SecretVault(key_path=key_path).encrypt("") == ""


def test_undecryptable_key_is_dropped(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"api_key_ciphertext": "fernet:garbage", "version": 1}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.api_key == ""
    assert "Unable to decrypt API key" in caplog.text


@pytest.mark.parametrize(
    ("value", "expected"),
    [("", ""), ("abc", "***"), ("abcdefgh", "ab****gh"), ("  gsk_1234  ", "gs****34")],
)
def test_redact_secret(value: str, expected: str) -> None:
    assert redact_secret(value) == expected
