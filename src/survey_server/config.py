"""Survey server settings.

Values come from ``SERVER_*`` environment variables (plus
``TRUSTED_PROXY_SECRET``) and may be overridden on the ``survey-server``
command line; see :func:`apply_overrides`.
"""

import dataclasses
import os
from dataclasses import dataclass, field

# Query() defaults are bound when the routes are declared, so the paging
# limits are read once at import.
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "20"))
MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "100"))

_TRUE = ("1", "true", "yes", "on")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE


def _split_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass(frozen=True)
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8080

    # Browser origins allowed to call the API; ["*"] during development
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    log_level: str = "INFO"

    # Run create_all on the survey tables at startup
    create_tables: bool = False

    # When set, requests carrying X-User-ID must also carry a matching
    # X-Proxy-Secret, i.e. identity headers are only trusted from the gateway
    trusted_proxy_secret: str | None = None


def load_settings() -> ServerSettings:
    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=_split_origins(os.getenv("SERVER_CORS_ORIGINS", "*")),
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        create_tables=_env_flag("SERVER_CREATE_TABLES"),
        trusted_proxy_secret=os.getenv("TRUSTED_PROXY_SECRET") or None,
    )


def apply_overrides(settings: ServerSettings, **overrides) -> ServerSettings:
    """Return ``settings`` with every non-None override applied.

    ``cors_origins`` may be given as a comma-separated string and
    ``log_level`` in any case.
    """
    changes = {k: v for k, v in overrides.items() if v is not None}
    if isinstance(changes.get("cors_origins"), str):
        changes["cors_origins"] = _split_origins(changes["cors_origins"])
    if "log_level" in changes:
        changes["log_level"] = changes["log_level"].upper()
    return dataclasses.replace(settings, **changes)
