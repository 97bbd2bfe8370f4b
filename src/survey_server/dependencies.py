"""FastAPI dependency injection — provides DB sessions, services, and caller identity.

Each request that touches the database gets a fresh ``AsyncSession`` via
``get_db()``.  The session is committed on success and rolled back on error,
matching the SDK convention where services and repository call ``flush()``
but never ``commit()``.

Identity is supplied by the upstream gateway:
  - administrators: ``X-User-ID`` plus ``X-User-Role: admin``
  - respondents: ``X-Respondent-Token`` (opaque, kept in local storage)
"""

import hmac
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.engine import get_session_factory
from survey_engine.models.records import Principal
from survey_engine.publication import PublicationService
from survey_engine.responses import ResponseService


# ------------------------------------------------------------------
# Database session: transaction boundary lives here
# ------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error.

    The SDK's repository methods call ``flush()`` but never ``commit()``,
    so this dependency is the single place where transactions are finalised.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ------------------------------------------------------------------
# Services: stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_publication(request: Request) -> PublicationService:
    """Return the PublicationService singleton from ``app.state``."""
    return request.app.state.publication


def get_responses(request: Request) -> ResponseService:
    """Return the ResponseService singleton from ``app.state``."""
    return request.app.state.responses


# ------------------------------------------------------------------
# Caller identity
# ------------------------------------------------------------------

async def get_principal(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_user_role: str | None = Header(None, alias="X-User-Role"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> Principal:
    """Extract the administrator identity from gateway headers.

    Returns 401 if ``X-User-ID`` is missing.  When ``TRUSTED_PROXY_SECRET``
    is configured, the request must also carry a matching
    ``X-Proxy-Secret`` header, proving the identity headers were injected
    by a trusted API gateway and not forged by an external client.

    Whether the caller may perform an operation is decided by the services
    (non-admins get 403).
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")

    # --- Proxy-secret validation (opt-in via TRUSTED_PROXY_SECRET) ---
    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise HTTPException(
                status_code=403,
                detail="X-Proxy-Secret header is required",
            )
        # Constant-time comparison to prevent timing side-channels.
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise HTTPException(status_code=403, detail="Invalid proxy secret")

    is_admin = (x_user_role or "").strip().lower() == "admin"
    return Principal(user_id=x_user_id, is_admin=is_admin)


async def get_respondent_token(
    x_respondent_token: str | None = Header(None, alias="X-Respondent-Token"),
) -> str:
    """Extract the respondent token; 401 if missing or blank."""
    token = (x_respondent_token or "").strip()
    if not token:
        raise HTTPException(status_code=401, detail="X-Respondent-Token header is required")
    return token
