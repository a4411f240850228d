"""Configuration domain exports."""

from .config_scaffold_builder import (
    DEFAULT_CONFIG_FILENAME,
    build_placeholder_configuration,
    write_placeholder_configuration,
)
from .loader import (
    PASSWORD_ENV_VAR,
    USERNAME_ENV_VAR,
    ConfigurationError,
    load_configuration,
    load_credentials,
)
from .runtime_settings import Configuration, Credentials, ImportSettings, ServerSettings

__all__ = [
    "Configuration",
    "Credentials",
    "ImportSettings",
    "ServerSettings",
    "ConfigurationError",
    "PASSWORD_ENV_VAR",
    "USERNAME_ENV_VAR",
    "load_configuration",
    "load_credentials",
    "DEFAULT_CONFIG_FILENAME",
    "build_placeholder_configuration",
    "write_placeholder_configuration",
]
