"""Persisted engine settings with an encrypted API key.

Settings live in ``~/.docpilot/settings.json``. The API key is never written
in clear text: :class:`SecretVault` seals it with a Fernet key kept next to
the settings file. Values are layered as file, then ``--set`` overrides, then
``DOCPILOT_*`` environment variables.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)

SETTINGS_VERSION = 1
_HOME = Path.home() / ".docpilot"
_CIPHERTEXT_KEY = "api_key_ciphertext"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


# environment variable -> (settings field, converter)
_ENV_OVERRIDES: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "DOCPILOT_API_KEY": ("api_key", str),
    "DOCPILOT_BASE_URL": ("base_url", str),
    "DOCPILOT_MODEL": ("model", str),
    "DOCPILOT_ORGANIZATION": ("organization", str),
    "DOCPILOT_TEMPERATURE": ("temperature", float),
    "DOCPILOT_REQUEST_TIMEOUT": ("request_timeout", float),
    "DOCPILOT_MAX_RETRIES": ("max_retries", int),
    "DOCPILOT_HISTORY_WINDOW": ("history_window", int),
    "DOCPILOT_DEBUG_LOGGING": ("debug_logging", _env_bool),
}


@dataclass(slots=True)
class Settings:
    """Model connection and turn tuning options."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    organization: str | None = None
    request_timeout: float = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    history_window: int = 5
    search_default_limit: int = 5
    search_max_limit: int = 20
    default_headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    debug_logging: bool = False


def _field_names() -> set[str]:
    return {item.name for item in fields(Settings)}


class SecretVault:
    """Seals secrets with a Fernet key stored in ``key_path`` (created on demand)."""

    name = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_HOME / "settings.key")
        self._fernet: Fernet | None = None

    @property
    def key_path(self) -> Path:
        return self._key_path

    def encrypt(self, secret: str) -> str:
        """Return ``fernet:<token>`` for ``secret``, or ``""`` for an empty secret."""

        if not secret:
            return ""
        token = self._cipher().encrypt(secret.encode("utf-8")).decode("ascii")
        return f"{self.name}:{token}"

    def decrypt(self, sealed: str | None) -> str:
        """Open a token produced by :meth:`encrypt`.

        Raises:
            ValueError: for a foreign prefix or a token this key cannot open.
        """

        if not sealed:
            return ""
        prefix, separator, token = sealed.partition(":")
        if not separator:
            prefix, token = self.name, sealed
        if prefix != self.name:
            raise ValueError(f"Secret was sealed by an unsupported backend: {prefix!r}")
        try:
            return self._cipher().decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as exc:
            raise ValueError("Secret token cannot be opened with the current key") from exc

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._read_or_create_key())
        return self._fernet

    def _read_or_create_key(self) -> bytes:
        if self._key_path.exists():
            return self._key_path.read_bytes().strip()
        self._key_path.parent.mkdir(parents=True, exist_ok=True)
        key = Fernet.generate_key()
        staging = self._key_path.with_name(self._key_path.name + ".tmp")
        staging.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - permission bits are POSIX only
            os.chmod(staging, 0o600)
        os.replace(staging, self._key_path)
        LOGGER.info("Created settings encryption key at %s", self._key_path)
        return key


class SettingsStore:
    """Reads and writes :class:`Settings` as versioned JSON."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or (_HOME / "settings.json")
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Return settings from disk with ``overrides`` and the environment applied.

        A file still holding a clear-text ``api_key`` or an older version is
        rewritten in the current format.
        """

        raw = self._read()
        settings, needs_rewrite = self._decode(raw)
        if needs_rewrite:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - read-only home directories
                LOGGER.warning("Could not rewrite settings file %s: %s", self._path, exc)
        if overrides:
            settings = _merge(settings, overrides, source="command line")
        return _merge(settings, _environment_overrides(), source="environment")

    def save(self, settings: Settings) -> Path:
        """Write ``settings`` atomically and return the file path."""

        document = asdict(settings)
        api_key = document.pop("api_key", "")
        if api_key:
            document[_CIPHERTEXT_KEY] = self._vault.encrypt(api_key)
        document["version"] = SETTINGS_VERSION

        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_name(self._path.name + ".tmp")
        staging.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(staging, self._path)
        LOGGER.debug("Settings written to %s", self._path)
        return self._path

    def _read(self) -> Dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Ignoring unreadable settings file %s: %s", self._path, exc)
            return {}
        if not isinstance(raw, dict):
            LOGGER.warning("Ignoring settings file %s: top level is not an object", self._path)
            return {}
        return raw

    def _decode(self, raw: Dict[str, Any]) -> tuple[Settings, bool]:
        if not raw:
            return Settings(), False

        known = _field_names() - {"api_key"}
        values = {key: value for key, value in raw.items() if key in known}
        try:
            settings = Settings(**values)
        except TypeError as exc:
            LOGGER.warning("Settings file %s has invalid values, using defaults: %s", self._path, exc)
            settings = Settings()

        needs_rewrite = raw.get("version") != SETTINGS_VERSION
        sealed = raw.get(_CIPHERTEXT_KEY)
        legacy = raw.get("api_key")
        if sealed:
            try:
                settings = replace(settings, api_key=self._vault.decrypt(sealed))
            except ValueError as exc:
                LOGGER.warning("API key could not be decrypted: %s", exc)
        elif legacy:
            LOGGER.info("Encrypting clear-text API key found in %s", self._path)
            settings = replace(settings, api_key=str(legacy))
            needs_rewrite = True
        LOGGER.debug("Settings loaded from %s", self._path)
        return settings, needs_rewrite


def _environment_overrides() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for variable, (name, convert) in _ENV_OVERRIDES.items():
        raw = os.environ.get(variable)
        if raw is None:
            continue
        try:
            values[name] = convert(raw)
        except ValueError:
            LOGGER.warning("Ignoring %s=%r: expected %s", variable, raw, getattr(convert, "__name__", "value"))
    return values


def _merge(settings: Settings, overrides: Mapping[str, Any], *, source: str) -> Settings:
    known = _field_names()
    changes = {key: value for key, value in overrides.items() if key in known and value is not None}
    if isinstance(changes.get("metadata"), Mapping):
        changes["metadata"] = {**settings.metadata, **changes["metadata"]}
    if not changes:
        return settings
    LOGGER.debug("Applying %s overrides: %s", source, ", ".join(sorted(changes)))
    return replace(settings, **changes)


def redact_secret(value: str | None) -> str:
    """Mask all but the first and last two characters of ``value``."""

    secret = (value or "").strip()
    if len(secret) <= 4:
        return "*" * len(secret)
    return secret[:2] + "*" * (len(secret) - 4) + secret[-2:]
