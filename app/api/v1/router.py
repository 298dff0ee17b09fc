from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.audit import router as audit_router
from app.api.v1.work_proposals import router as work_proposals_router

v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(audit_router, tags=["audit"])

# ------------------------------------------------------------------
# WORK PROPOSALS (approvals, tender, work order, progress ledger)
# ------------------------------------------------------------------
v1_router.include_router(work_proposals_router, tags=["work-proposals"])
