"""trustbadge.config — Environment-driven settings.

Read once at startup via ``Settings.from_env()``:

    TRUSTBADGE_PRIVATE_KEY   base64 Ed25519 seed (required to issue)
    TRUSTBADGE_PUBLIC_KEY    base64 Ed25519 public key (checked against the seed)
    TRUSTBADGE_ISSUER        ``iss`` claim, default "trustbridge"
    BADGE_EXPIRY_DAYS        validity window, default 7
    STORE_TIMEOUT_SECONDS    per-call store budget, default 5.0
    AUDIT_TIMEOUT_SECONDS    per-call audit budget, default 2.0
    DATABASE_URL             PostgreSQL DSN; in-memory stores when unset
    ADMIN_API_KEY            key for write endpoints
    ALLOWED_ORIGINS          comma-separated CORS origins
    LOG_LEVEL                default INFO
    TRUSTBADGE_PRODUCTION    any value hides the interactive docs
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping, Optional

from trustbadge.errors import ValidationError

DEFAULT_ISSUER = "trustbridge"
DEFAULT_EXPIRY_DAYS = 7
DEFAULT_STORE_TIMEOUT = 5.0
DEFAULT_AUDIT_TIMEOUT = 2.0


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name, "")
    if raw == "":
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ValidationError(f"{name} must be a number, got {raw!r}", reason="invalid_config") from e
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {raw!r}", reason="invalid_config")
    return value


@dataclass(frozen=True)
class Settings:
    private_key_b64: str = ""
    public_key_b64: str = ""
    issuer: str = DEFAULT_ISSUER
    badge_expiry_days: int = DEFAULT_EXPIRY_DAYS
    store_timeout: float = DEFAULT_STORE_TIMEOUT
    audit_timeout: float = DEFAULT_AUDIT_TIMEOUT
    database_url: Optional[str] = None
    admin_api_key: str = ""
    allowed_origins: list[str] = field(default_factory=list)
    log_level: str = "INFO"
    production: bool = False

    @property
    def validity_window(self) -> timedelta:
        return timedelta(days=self.badge_expiry_days)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        origins = [o.strip() for o in env.get("ALLOWED_ORIGINS", "").split(",") if o.strip()]
        return cls(
            private_key_b64=env.get("TRUSTBADGE_PRIVATE_KEY", ""),
            public_key_b64=env.get("TRUSTBADGE_PUBLIC_KEY", ""),
            issuer=env.get("TRUSTBADGE_ISSUER", "") or DEFAULT_ISSUER,
            badge_expiry_days=_number(env, "BADGE_EXPIRY_DAYS", DEFAULT_EXPIRY_DAYS, int),
            store_timeout=_number(env, "STORE_TIMEOUT_SECONDS", DEFAULT_STORE_TIMEOUT, float),
            audit_timeout=_number(env, "AUDIT_TIMEOUT_SECONDS", DEFAULT_AUDIT_TIMEOUT, float),
            database_url=env.get("DATABASE_URL") or None,
            admin_api_key=env.get("ADMIN_API_KEY", ""),
            allowed_origins=origins,
            log_level=env.get("LOG_LEVEL", "INFO"),
            production=bool(env.get("TRUSTBADGE_PRODUCTION")),
        )
