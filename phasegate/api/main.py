"""
Core engine scope only. Do not implement beyond this file's responsibilities.
HTTP surface: edit webhook from the record store, issue log and admin registry.
"""

from fastapi import FastAPI, HTTPException, Depends, Query
from typing import Optional

from .schemas import (
    EditEventRequest,
    EditOutcomeResponse,
    IssueResponse,
    IssueListResponse,
    ResolveResponse,
    AdminListResponse,
    AdminUpdateRequest,
    HealthResponse
)
from ..core import config
from ..core.config import VERSION, debug_enabled, validate_engine_config
from ..core.db import init_db, health_check
from ..core.router import EventRouter
from ..core.schema import EditEvent, IssueCategory

from util.logging import logger

app = FastAPI(
    title="Phase Gate API",
    version=VERSION,
    description="Edit-triggered phase gate validation for the project tracker",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)

_event_router: Optional[EventRouter] = None


def get_event_router() -> EventRouter:
    """Process-wide router over the configured database."""
    global _event_router
    if _event_router is None:
        init_db()
        _event_router = EventRouter()
    return _event_router


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(router: EventRouter = Depends(get_event_router)):
    """Check system health."""
    db_health = health_check(router.db_path)
    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        open_issues=router.audit.open_count(),
        config_issues=validate_engine_config()
    )


@app.post("/events/edit", response_model=EditOutcomeResponse)
def handle_edit_endpoint(req: EditEventRequest, router: EventRouter = Depends(get_event_router)):
    """Run one edit notification through the engine. Never fails on engine errors."""
    if not config.API_ENABLED:
        raise HTTPException(status_code=503, detail="Edit webhook disabled (API_ENABLED=false)")

    outcome = router.handle_edit(EditEvent(
        collection=req.collection,
        row_id=req.row_id,
        field=req.field,
        prior_value=req.prior_value,
        actor=req.actor
    ))
    return EditOutcomeResponse(
        collection=outcome.collection,
        row_id=outcome.row_id,
        field=outcome.field,
        action=outcome.action,
        handled=outcome.handled,
        writes=outcome.writes,
        detail=outcome.detail
    )


@app.get("/issues", response_model=IssueListResponse)
def list_issues_endpoint(category: Optional[str] = None, include_resolved: bool = True,
                         limit: int = Query(100, ge=1, le=1000),
                         router: EventRouter = Depends(get_event_router)):
    """List issue log entries, newest first."""
    parsed = None
    if category:
        try:
            parsed = IssueCategory(category)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown category: {category}")

    entries = router.audit.list_issues(parsed, include_resolved, limit)
    return IssueListResponse(issues=[IssueResponse(**entry.to_dict()) for entry in entries])


@app.post("/issues/{issue_id}/resolve", response_model=ResolveResponse)
def resolve_issue_endpoint(issue_id: int, router: EventRouter = Depends(get_event_router)):
    """Mark an issue resolved."""
    if not router.audit.resolve(issue_id):
        raise HTTPException(status_code=404, detail=f"No open issue {issue_id}")
    return ResolveResponse(success=True, id=issue_id)


@app.get("/admins", response_model=AdminListResponse)
def get_admins_endpoint(router: EventRouter = Depends(get_event_router)):
    return AdminListResponse(admins=router.registry.get_admins())


@app.put("/admins", response_model=AdminListResponse)
def set_admins_endpoint(req: AdminUpdateRequest, router: EventRouter = Depends(get_event_router)):
    """Replace the admin list; only an existing admin may do this."""
    if not router.registry.is_admin(req.actor):
        logger.warning(f"Admin list update refused for {req.actor}")
        raise HTTPException(status_code=403, detail="Only admins can change the admin list")
    return AdminListResponse(admins=router.registry.set_admins(req.admins))
