from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ENV_PREFIX = "APP_"
CONFIG_FILENAME = "config.json"
_SUPPORTED_HASHES = ("md5", "sha1", "sha256")

DEFAULTS: dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 36677,
        "serve_static": True,
    },
    "storage": {
        "upload_dir": "./uploads",
        "base_url": "https://uploads.example.com",
        "max_file_size": 32 * 1024 * 1024,
        "hash_algorithm": "md5",
        "chunk_size": 32 * 1024,
    },
    "auth": {
        "enabled": False,
        "secret_key": "",
    },
    "log_level": "INFO",
}


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded or is invalid."""


def _load_dotenv() -> None:
    if os.getenv("APP_SKIP_DOTENV") == "1":
        return

    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return

    try:
        from dotenv import load_dotenv
    except ImportError:
        logger.debug("python-dotenv not installed; skipping .env load")
        return

    load_dotenv(env_path, override=False)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _coerce(raw: str, default: Any, key: str) -> Any:
    if isinstance(default, bool):
        return _parse_bool(raw, default=default)
    if isinstance(default, int):
        try:
            return int(raw.strip())
        except ValueError as exc:
            raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc
    return raw


def env_key(*parts: str) -> str:
    """``storage.base_url`` -> ``APP_STORAGE_BASE_URL``; ``log_level`` -> ``APP_LOG_LEVEL``."""
    return (ENV_PREFIX + "_".join(parts)).upper()


@dataclass(frozen=True)
class ServerSettings:
    host: str
    port: int
    serve_static: bool


@dataclass(frozen=True)
class StorageSettings:
    upload_dir: Path
    base_url: str
    max_file_size: int
    hash_algorithm: str
    chunk_size: int


@dataclass(frozen=True)
class AuthSettings:
    enabled: bool
    secret_key: str


@dataclass(frozen=True)
class Settings:
    server: ServerSettings
    storage: StorageSettings
    auth: AuthSettings
    log_level: str
    config_path: Path | None = None


def _find_config_file(search_dirs: list[Path]) -> Path | None:
    explicit = os.getenv("APP_CONFIG_FILE")
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigError(f"config file not found: {path}")
        return path

    for directory in search_dirs:
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"failed to read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must contain a JSON object")
    return data


def _write_default_config(path: Path) -> None:
    try:
        path.write_text(json.dumps(DEFAULTS, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to create config file: {exc}") from exc


def _override(default: Any, value: Any, key: str) -> Any:
    raw = os.getenv(env_key(*key.split(".")))
    if raw is not None:
        return _coerce(raw, default, key)
    return value


def _from_file(value: Any, default: Any, key: str) -> Any:
    # JSON strings such as "false" or "8080" are read like env values
    if isinstance(value, str) and not isinstance(default, str):
        return _coerce(value, default, key)
    return value


def _merge(file_values: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(DEFAULTS)
    for section, defaults in merged.items():
        overrides = file_values.get(section)
        if not isinstance(defaults, dict):
            if overrides is not None:
                merged[section] = _from_file(overrides, defaults, section)
            continue
        if overrides is None:
            continue
        if not isinstance(overrides, dict):
            raise ConfigError(f"config section {section!r} must be an object")
        for name, value in overrides.items():
            if name in defaults:
                defaults[name] = _from_file(value, defaults[name], f"{section}.{name}")

    for section, defaults in merged.items():
        if not isinstance(defaults, dict):
            merged[section] = _override(DEFAULTS[section], defaults, section)
            continue
        for name, value in list(defaults.items()):
            defaults[name] = _override(DEFAULTS[section][name], value, f"{section}.{name}")
    return merged


def _validate(settings: Settings) -> None:
    if not 1 <= settings.server.port <= 65535:
        raise ConfigError(f"invalid port: {settings.server.port}")
    if not str(settings.storage.upload_dir):
        raise ConfigError("upload_dir cannot be empty")
    if not settings.storage.base_url:
        raise ConfigError("base_url cannot be empty")
    if settings.storage.max_file_size <= 0:
        raise ConfigError("max_file_size must be positive")
    if settings.storage.chunk_size <= 0:
        raise ConfigError("chunk_size must be positive")
    if settings.storage.hash_algorithm not in _SUPPORTED_HASHES:
        raise ConfigError(
            f"hash_algorithm must be one of {', '.join(_SUPPORTED_HASHES)}, "
            f"got {settings.storage.hash_algorithm!r}"
        )
    if settings.auth.enabled and not settings.auth.secret_key:
        raise ConfigError("secret_key cannot be empty when auth is enabled")
    if not isinstance(logging.getLevelName(settings.log_level), int):
        raise ConfigError(f"unknown log_level: {settings.log_level!r}")


def build_settings(values: dict[str, Any], config_path: Path | None = None) -> Settings:
    """Post-process merged values into a validated, immutable snapshot."""
    server = values["server"]
    storage = values["storage"]
    auth = values["auth"]

    upload_dir_raw = str(storage["upload_dir"] or "").strip()
    if not upload_dir_raw:
        raise ConfigError("upload_dir cannot be empty")

    try:
        settings = Settings(
            server=ServerSettings(
                host=str(server["host"]),
                port=int(server["port"]),
                serve_static=bool(server["serve_static"]),
            ),
            storage=StorageSettings(
                upload_dir=Path(upload_dir_raw).expanduser().resolve(),
                base_url=str(storage["base_url"] or "").rstrip("/"),
                max_file_size=int(storage["max_file_size"]),
                hash_algorithm=str(storage["hash_algorithm"]).strip().lower(),
                chunk_size=int(storage["chunk_size"]),
            ),
            auth=AuthSettings(
                enabled=bool(auth["enabled"]),
                secret_key=str(auth["secret_key"] or ""),
            ),
            log_level=str(values["log_level"]).strip().upper(),
            config_path=config_path,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid config value: {exc}") from exc

    _validate(settings)
    return settings


def load_settings(search_dirs: list[Path] | None = None) -> Settings:
    _load_dotenv()

    if search_dirs is None:
        search_dirs = [Path.cwd(), Path.cwd() / "config"]

    config_path = _find_config_file(search_dirs)
    file_values: dict[str, Any] = {}
    if config_path is not None:
        file_values = _read_config_file(config_path)
    elif os.getenv("APP_SKIP_CONFIG_WRITE") != "1":
        config_path = search_dirs[0] / CONFIG_FILENAME
        logger.info("Config file not found, using defaults and creating %s", config_path)
        _write_default_config(config_path)

    return build_settings(_merge(file_values), config_path=config_path)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
