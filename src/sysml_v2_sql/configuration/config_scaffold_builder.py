"""Configuration scaffold generation helpers."""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_FILENAME = "sysml-v2-sql.yaml"

_CONFIG_SCAFFOLD_TEMPLATE = """# Configuration for sysml-v2-sql.
# Every setting is optional; remove the ones you do not need.
# Credentials are never stored here: export SYSML_USERNAME and SYSML_PASSWORD instead.

server:
  # Base URL of the SysML v2 API, used when fetch is called without BASE_URL.
  # base_url: "<OPTIONAL>"
  # Set to false only for servers with self-signed certificates.
  verify_tls: true
  # Number of elements requested per page; omit to use the server default.
  page_size: 1000
  request_timeout_seconds: 60
  overall_timeout_seconds: 3600
  # Transient failures (network errors, HTTP 5xx) are retried with exponential backoff.
  max_retries: 3
  retry_backoff_seconds: 1

import:
  disable_foreign_key_checks: false
  vacuum: false
  # Accept "true"/"false" strings for boolean attributes.
  tolerant_booleans: false

schema:
  # JSON schema used to classify relationships during import; defaults to the bundled schema.
  # path: "<OPTIONAL>"
"""


def build_placeholder_configuration() -> str:
    """Build a YAML configuration template with placeholders and inline guidance."""
    return _CONFIG_SCAFFOLD_TEMPLATE


def write_placeholder_configuration(output_path: Path | str) -> Path:
    """Write the placeholder configuration template to the requested output path.

    Args:
      output_path: Destination file path for the scaffold.

    Returns:
      The resolved destination path.

    Raises:
      FileExistsError: If the destination file already exists.
      OSError: If writing the scaffold fails.
    """
    destination = Path(output_path)
    if destination.exists():
        raise FileExistsError(f"Configuration file already exists: {destination.resolve()}")
    destination.write_text(build_placeholder_configuration(), encoding="utf-8")
    return destination.resolve()
