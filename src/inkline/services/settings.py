"""Completion settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..ai.client import ClientSettings

__all__ = [
    "CompletionSettings",
    "SettingsStore",
    "SecretVault",
    "DEFAULT_BASE_URL",
    "DEFAULT_MODEL",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".inkline"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama3-8b-8192"
# Checked in order; the first variable that is set wins.
_API_KEY_ENV_VARS: tuple[str, ...] = ("INKLINE_API_KEY", "GROQ_API_KEY")
_ENV_OVERRIDES: Mapping[str, str] = {
    "INKLINE_BASE_URL": "base_url",
    "INKLINE_MODEL": "model",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "INKLINE_ENABLED": "enabled",
    "INKLINE_DEBUG_LOGGING": "debug_logging",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKLINE_DEBOUNCE_MS": "debounce_ms",
    "INKLINE_TIMEOUT_MS": "timeout_ms",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_API_KEY_FIELD = "api_key_ciphertext"


@dataclass(slots=True)
class CompletionSettings:
    """User-configurable inline completion settings persisted between sessions."""

    enabled: bool = True
    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    model: str = DEFAULT_MODEL
    debounce_ms: int = 400
    max_context_lines: int = 50
    max_context_chars: int = 800
    min_context_chars: int = 10
    cache_capacity: int = 50
    timeout_ms: int = 10_000
    max_output_tokens: int = 50
    temperature: float = 0.1
    max_retries: int = 2  # retries after the first attempt
    max_preview_chars: int = 60
    max_preview_lines: int = 2
    debug_logging: bool = False
    default_headers: dict[str, str] = field(default_factory=dict)

    def normalized(self) -> CompletionSettings:
        """Return a copy with every numeric field clamped into a usable range."""

        return replace(
            self,
            debounce_ms=_clamp(self.debounce_ms, 40, 5_000),
            max_context_lines=_clamp(self.max_context_lines, 1, 500),
            max_context_chars=_clamp(self.max_context_chars, 64, 16_000),
            min_context_chars=_clamp(self.min_context_chars, 0, 200),
            cache_capacity=_clamp(self.cache_capacity, 1, 10_000),
            timeout_ms=_clamp(self.timeout_ms, 1_000, 30_000),
            max_output_tokens=_clamp(self.max_output_tokens, 1, 512),
            temperature=min(2.0, max(0.0, float(self.temperature))),
            max_retries=_clamp(self.max_retries, 0, 5),
            max_preview_chars=_clamp(self.max_preview_chars, 8, 400),
            max_preview_lines=_clamp(self.max_preview_lines, 1, 20),
        )

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def to_client_settings(self) -> ClientSettings:
        """Project the fields the provider client cares about."""

        return ClientSettings(
            base_url=self.base_url,
            api_key=self.api_key,
            model=self.model,
            request_timeout=self.timeout_seconds,
            max_retries=self.max_retries,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            default_headers=dict(self.default_headers) or None,
            debug_logging=self.debug_logging,
        )


class SecretVault:
    """Encrypts the API key with a Fernet key stored next to the settings file."""

    name = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    @property
    def key_path(self) -> Path:
        return self._key_path

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return f"{self.name}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if not payload:
            prefix, payload = self.name, token
        if prefix != self.name:
            raise ValueError(f"Unknown secret token prefix {prefix!r}")
        try:
            raw = self._get_fernet().decrypt(payload.encode("ascii"))
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc
        return raw.decode("utf-8")

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`CompletionSettings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> CompletionSettings:
        """Load settings from disk, then apply runtime and environment overrides."""

        payload = self._read_payload()
        settings = CompletionSettings()
        needs_migration = False

        if payload:
            plaintext_key, needs_migration = self._decrypt_api_key(
                payload.pop(_API_KEY_FIELD, None), payload.pop("api_key", None)
            )
            data = _filter_fields(payload)
            try:
                settings = CompletionSettings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = CompletionSettings()
            if plaintext_key:
                settings = replace(settings, api_key=plaintext_key)
            LOGGER.debug("Settings loaded from %s (model=%s)", self._path, settings.model)

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if needs_migration or version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - defensive guard
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")
        settings = self._apply_env_overrides(settings)
        return settings.normalized()

    def save(self, settings: CompletionSettings) -> Path:
        """Persist settings to disk with an atomic replace."""

        body = json.dumps(self._serialize(settings), indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: CompletionSettings) -> Dict[str, Any]:
        data = asdict(settings)
        api_key = data.pop("api_key", "") or ""
        if api_key:
            data[_API_KEY_FIELD] = self._vault.encrypt(api_key)
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not hold an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: CompletionSettings,
        overrides: Mapping[str, Any],
        *,
        source: str,
    ) -> CompletionSettings:
        allowed = {item.name for item in fields(CompletionSettings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: CompletionSettings) -> CompletionSettings:
        overrides: Dict[str, Any] = {}
        for env_name in _API_KEY_ENV_VARS:
            value = os.environ.get(env_name)
            if value:
                overrides["api_key"] = value.strip()
                break
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                overrides[field_name] = value.strip()
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings

    def _decrypt_api_key(self, ciphertext: str | None, legacy_plaintext: str | None) -> tuple[str, bool]:
        if ciphertext:
            try:
                return self._vault.decrypt(ciphertext), False
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt API key: %s", exc)
                return "", False
        if legacy_plaintext:
            LOGGER.info("Detected legacy plaintext API key; migrating to encrypted storage.")
            return legacy_plaintext, True
        return "", False


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(CompletionSettings)} - {"api_key"}
    return {key: value for key, value in payload.items() if key in allowed}


def _clamp(value: Any, lower: int, upper: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = lower
    return min(upper, max(lower, number))


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
