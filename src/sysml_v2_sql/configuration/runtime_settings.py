"""Configuration domain entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ServerSettings:  # pylint: disable=too-many-instance-attributes
    """SysML v2 API connectivity configuration."""

    base_url: str | None = None
    verify_tls: bool = True
    page_size: int | None = None
    request_timeout_seconds: float = 60.0
    overall_timeout_seconds: float = 3600.0
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0


@dataclass(frozen=True)
class Credentials:
    """Basic-auth credentials for the SysML v2 API."""

    username: str
    password: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class ImportSettings:
    """Options applied while importing elements into the database."""

    disable_foreign_key_checks: bool = False
    vacuum: bool = False
    tolerant_booleans: bool = False


@dataclass(frozen=True)
class Configuration:
    """Top-level configuration aggregate."""

    path: Path | None = None
    server: ServerSettings = field(default_factory=ServerSettings)
    credentials: Credentials | None = None
    import_settings: ImportSettings = field(default_factory=ImportSettings)
    schema_path: Path | None = None
