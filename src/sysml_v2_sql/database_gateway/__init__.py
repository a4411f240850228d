"""Database gateway exports."""

from .sqlite_gateway import DatabaseGateway, DatabaseGatewayError, IntegrityViolationError

__all__ = [
    "DatabaseGateway",
    "DatabaseGatewayError",
    "IntegrityViolationError",
]
