"""Runtime settings for the Ordering domain.

Settings are read from ``ORDERING_*`` environment variables. ``ORDERING_ENV``
(falling back to ``ENV``/``ENVIRONMENT``) selects the defaults overlay, the
same way the logging setup picks its level.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ordering.exceptions import ConfigurationError

_DEFAULT_DATABASE_URIS = {
    "test": "sqlite:///:memory:",
    "development": "sqlite:///ordering.db",
}


def _current_env(environ) -> str:
    return (environ.get("ORDERING_ENV") or environ.get("ENV") or environ.get("ENVIRONMENT") or "development").lower()


def _int(environ, name: str, default: int, minimum: int, maximum: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if not minimum <= value <= maximum:
        raise ConfigurationError(f"{name} must be between {minimum} and {maximum}, got {value}")
    return value


def _decimal(environ, name: str, default: str) -> Decimal:
    raw = environ.get(name) or default
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise ConfigurationError(f"{name} must be a decimal amount, got {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative")
    return value


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    database_uri: str = "sqlite:///ordering.db"
    timezone: str = "UTC"
    currency: str = "CNY"
    sn_token_length: int = 6
    default_page_size: int = 20
    max_page_size: int = 100
    freight: dict[str, Decimal] = field(
        default_factory=lambda: {"express": Decimal("10.00"), "pickup": Decimal("0.00")}
    )
    max_conflict_retries: int = 3

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from the process environment (or the given mapping)."""
        environ = os.environ if environ is None else environ
        env = _current_env(environ)

        database_uri = environ.get("ORDERING_DATABASE_URI") or _DEFAULT_DATABASE_URIS.get(env)
        if not database_uri:
            raise ConfigurationError(f"ORDERING_DATABASE_URI is required in the {env} environment")

        timezone = environ.get("ORDERING_TIMEZONE") or "UTC"
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"Unknown timezone: {timezone}") from exc

        currency = (environ.get("ORDERING_CURRENCY") or "CNY").upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ConfigurationError(f"ORDERING_CURRENCY must be an ISO 4217 code, got {currency!r}")

        max_page_size = _int(environ, "ORDERING_MAX_PAGE_SIZE", 100, 1, 1000)

        return cls(
            env=env,
            database_uri=database_uri,
            timezone=timezone,
            currency=currency,
            sn_token_length=_int(environ, "ORDERING_SN_TOKEN_LENGTH", 6, 4, 16),
            default_page_size=_int(environ, "ORDERING_DEFAULT_PAGE_SIZE", 20, 1, max_page_size),
            max_page_size=max_page_size,
            freight={
                "express": _decimal(environ, "ORDERING_EXPRESS_FREIGHT", "10.00"),
                "pickup": _decimal(environ, "ORDERING_PICKUP_FREIGHT", "0.00"),
            },
            max_conflict_retries=_int(environ, "ORDERING_MAX_CONFLICT_RETRIES", 3, 0, 20),
        )
