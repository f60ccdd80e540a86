"""Compliance dashboard endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.auth.dependencies import get_current_user
from certtracker.auth.models import User
from certtracker.compliance.schemas import ComplianceSnapshot
from certtracker.compliance.service import ComplianceService
from certtracker.database import get_db

router = APIRouter(prefix="", tags=["compliance"])


@router.get("/dashboard", response_model=ComplianceSnapshot)
async def compliance_dashboard(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Totals, lowest-compliance positions and soonest expiries, computed now."""
    return await ComplianceService.snapshot(db)
