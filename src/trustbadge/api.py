"""
trustbadge API — HTTP binding of the badge service operations.

Router prefix: /api/badges
Public endpoints (no auth required):
  POST /verify                      — Verify a presented badge
  GET  /public-key                  — Issuer key for offline verification
  GET  /subjects/{subject_id}/score — Current score and clearance
API-key endpoints:
  POST /generate                    — Issue a badge from current anchors
  POST /revoke                      — Revoke one badge
  POST /subjects/{subject_id}/revoke-all
  GET  /subjects/{subject_id}       — Active badges, newest first
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from pydantic import BaseModel, Field, field_validator

from trustbadge import __version__
from trustbadge.audit import VerificationAuditLog
from trustbadge.badges import BadgeLifecycleManager
from trustbadge.config import Settings
from trustbadge.keys import KeyManager
from trustbadge.security import apply_security, limiter, logger, require_api_key, verifier_context
from trustbadge.storage import MemoryAnchorStore, MemoryBadgeStore


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class IssueRequest(BaseModel):
    subject_id: str = Field(..., min_length=1, max_length=200)

    @field_validator("subject_id")
    @classmethod
    def no_null_bytes(cls, v: str) -> str:
        if "\x00" in v:
            raise ValueError("Null bytes not allowed")
        return v.strip()


class VerifyRequest(BaseModel):
    badge_token: str = Field(..., min_length=1, max_length=200)
    payload: dict
    signature: str = Field(..., min_length=1, max_length=200)


class RevokeRequest(BaseModel):
    badge_token: str = Field(..., min_length=1, max_length=200)
    reason: Optional[str] = Field(None, max_length=255)


class RevokeAllRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api/badges", tags=["badges"])


def get_manager(request: Request) -> BadgeLifecycleManager:
    return request.app.state.manager


@router.post("/generate", status_code=201)
async def generate_badge(
    req: IssueRequest,
    manager: BadgeLifecycleManager = Depends(get_manager),
    _auth: str = Depends(require_api_key),
):
    """Issue a new badge for the subject from its currently connected anchors."""
    badge = await manager.issue_for(req.subject_id)
    return {
        "message": "Auth-Badge generated successfully",
        "badge": badge.to_wire(include_breakdown=True),
    }


@router.post("/verify")
@limiter.limit("120/minute")
async def verify_badge(
    request: Request,
    req: VerifyRequest,
    manager: BadgeLifecycleManager = Depends(get_manager),
):
    """Public verification. Routine failures come back as 200 with valid=false."""
    result = await manager.verify(
        req.badge_token, req.payload, req.signature, context=verifier_context(request)
    )
    return result.to_dict()


@router.post("/revoke")
async def revoke_badge(
    req: RevokeRequest,
    manager: BadgeLifecycleManager = Depends(get_manager),
    _auth: str = Depends(require_api_key),
):
    result = await manager.revoke(req.badge_token, req.reason)
    return result.to_dict()


@router.post("/subjects/{subject_id}/revoke-all")
async def revoke_all_badges(
    subject_id: str,
    req: RevokeAllRequest,
    manager: BadgeLifecycleManager = Depends(get_manager),
    _auth: str = Depends(require_api_key),
):
    count = await manager.revoke_all(subject_id, req.reason)
    return {"revoked": count}


@router.get("/public-key")
async def public_key(manager: BadgeLifecycleManager = Depends(get_manager)):
    return {
        "message": "Use this public key to verify Auth-Badge signatures",
        **manager.public_key(),
    }


@router.get("/subjects/{subject_id}")
async def list_badges(
    subject_id: str,
    manager: BadgeLifecycleManager = Depends(get_manager),
    _auth: str = Depends(require_api_key),
):
    badges = await manager.list_active(subject_id)
    return {"count": len(badges), "badges": [b.summary() for b in badges]}


@router.get("/subjects/{subject_id}/score")
async def subject_score(subject_id: str, manager: BadgeLifecycleManager = Depends(get_manager)):
    scored = await manager.score(subject_id)
    return {"subject_id": subject_id, **scored.to_dict()}


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def build_manager(settings: Settings) -> BadgeLifecycleManager:
    """In-memory manager from settings (no DATABASE_URL)."""
    keys = KeyManager.from_base64(settings.private_key_b64, settings.public_key_b64)
    return BadgeLifecycleManager.from_settings(
        settings, keys, MemoryBadgeStore(), anchor_store=MemoryAnchorStore(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the manager on startup unless one was injected; close the DB on shutdown."""
    db = None
    if getattr(app.state, "manager", None) is None:
        settings: Settings = app.state.settings
        if settings.database_url:
            from trustbadge.database import (
                Database, PostgresAnchorStore, PostgresAuditSink, PostgresBadgeStore,
            )
            keys = KeyManager.from_base64(settings.private_key_b64, settings.public_key_b64)
            db = Database(settings.database_url, command_timeout=settings.store_timeout)
            await db.connect()
            app.state.manager = BadgeLifecycleManager.from_settings(
                settings, keys, PostgresBadgeStore(db),
                anchor_store=PostgresAnchorStore(db),
                audit=VerificationAuditLog(PostgresAuditSink(db), timeout=settings.audit_timeout),
            )
        else:
            logger.warning("DATABASE_URL not set; badges will not survive a restart")
            app.state.manager = build_manager(settings)
        logger.info("Badge issuer ready", extra={"key_id": app.state.manager.keys.key_id})
    try:
        yield
    finally:
        if db is not None:
            await db.close()


def create_app(manager: Optional[BadgeLifecycleManager] = None,
               settings: Optional[Settings] = None) -> FastAPI:
    """Create the FastAPI app. Pass ``manager`` to skip startup wiring (tests)."""
    settings = settings or Settings.from_env()
    app = FastAPI(
        title="trustbadge API",
        description="Signed trust badges — issue, verify, revoke.",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if settings.production else "/docs",
        redoc_url=None if settings.production else "/redoc",
    )
    app.state.settings = settings
    app.state.manager = manager
    apply_security(app, settings.allowed_origins)
    app.include_router(router)

    @app.get("/health")
    async def health():
        mgr = app.state.manager
        return {
            "status": "ok" if mgr is not None else "starting",
            "version": __version__,
            "key_id": mgr.keys.key_id if mgr is not None else None,
        }

    return app
