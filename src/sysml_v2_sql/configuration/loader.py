"""Configuration loader service."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .runtime_settings import Configuration, Credentials, ImportSettings, ServerSettings

USERNAME_ENV_VAR = "SYSML_USERNAME"
PASSWORD_ENV_VAR = "SYSML_PASSWORD"


class ConfigurationError(Exception):
    """Raised when the configuration file or environment is invalid."""


def load_configuration(
    config_path: Path | str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Configuration:
    """Load and validate the configuration file and environment credentials.

    Without a configuration file every setting takes its default value.
    """
    credentials = load_credentials(os.environ if environ is None else environ)
    if config_path is None:
        return Configuration(credentials=credentials)

    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:  # pragma: no cover - exercised indirectly
        raise ConfigurationError(f"Failed to parse configuration file: {exc}") from exc

    if parsed is None:
        parsed = {}

    if not isinstance(parsed, Mapping):
        raise ConfigurationError("Configuration root must be a mapping.")

    return Configuration(
        path=path,
        server=_parse_server_section(parsed.get("server")),
        credentials=credentials,
        import_settings=_parse_import_section(parsed.get("import")),
        schema_path=_parse_schema_section(parsed.get("schema"), path.parent),
    )


def load_credentials(environ: Mapping[str, str]) -> Credentials | None:
    """Read basic-auth credentials from the environment."""
    username = _optional_string(environ.get(USERNAME_ENV_VAR), USERNAME_ENV_VAR)
    password = environ.get(PASSWORD_ENV_VAR) or None
    if password is not None and username is None:
        raise ConfigurationError(
            f"{PASSWORD_ENV_VAR} is set but {USERNAME_ENV_VAR} is not;"
            " a password requires a username."
        )
    if username is None:
        return None
    return Credentials(username=username, password=password)


def _parse_server_section(value: Any) -> ServerSettings:
    section = _optional_mapping(value, "server")
    defaults = ServerSettings()
    page_size = section.get("page_size")
    if page_size is not None:
        page_size = _require_positive_int(page_size, "server.page_size")
    return ServerSettings(
        base_url=_optional_string(section.get("base_url"), "server.base_url"),
        verify_tls=_require_bool(section.get("verify_tls", True), "server.verify_tls"),
        page_size=page_size,
        request_timeout_seconds=_require_positive_number(
            section.get("request_timeout_seconds", defaults.request_timeout_seconds),
            "server.request_timeout_seconds",
        ),
        overall_timeout_seconds=_require_positive_number(
            section.get("overall_timeout_seconds", defaults.overall_timeout_seconds),
            "server.overall_timeout_seconds",
        ),
        max_retries=_require_non_negative_int(
            section.get("max_retries", defaults.max_retries), "server.max_retries"
        ),
        retry_backoff_seconds=_require_non_negative_number(
            section.get("retry_backoff_seconds", defaults.retry_backoff_seconds),
            "server.retry_backoff_seconds",
        ),
    )


def _parse_import_section(value: Any) -> ImportSettings:
    section = _optional_mapping(value, "import")
    return ImportSettings(
        disable_foreign_key_checks=_require_bool(
            section.get("disable_foreign_key_checks", False), "import.disable_foreign_key_checks"
        ),
        vacuum=_require_bool(section.get("vacuum", False), "import.vacuum"),
        tolerant_booleans=_require_bool(
            section.get("tolerant_booleans", False), "import.tolerant_booleans"
        ),
    )


def _parse_schema_section(value: Any, base_path: Path) -> Path | None:
    section = _optional_mapping(value, "schema")
    raw_path = _optional_string(section.get("path"), "schema.path")
    if raw_path is None:
        return None
    schema_path = _resolve_path(base_path, raw_path)
    if not schema_path.exists():
        raise ConfigurationError(f"Schema file not found: {schema_path}")
    return schema_path


def _resolve_path(base_path: Path, raw_path: str) -> Path:
    candidate = Path(raw_path)
    if not candidate.is_absolute():
        return (base_path / candidate).resolve()
    return candidate


def _optional_mapping(value: Any, section_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Configuration section '{section_name}' must be a mapping.")
    return value


def _optional_string(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    return stripped or None


def _require_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be true or false.")
    return value


def _require_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if value <= 0:
        raise ConfigurationError(f"{field_name} must be greater than zero.")
    return value


def _require_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if value < 0:
        raise ConfigurationError(f"{field_name} must not be negative.")
    return value


def _require_positive_number(value: Any, field_name: str) -> float:
    number = _require_non_negative_number(value, field_name)
    if number == 0:
        raise ConfigurationError(f"{field_name} must be greater than zero.")
    return number


def _require_non_negative_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigurationError(f"{field_name} must be a number.")
    if value < 0:
        raise ConfigurationError(f"{field_name} must not be negative.")
    return float(value)
