"""Admin analytics endpoints."""

from fastapi import APIRouter, Depends, Query

from examadmin.core import analytics
from examadmin.core.auth import AuthContext
from examadmin.core.security import ADMIN_ROLES
from examadmin.web.deps import API_PREFIX, require_roles

router = APIRouter(prefix=f"{API_PREFIX}/analytics", tags=["analytics"])

require_staff = require_roles(*ADMIN_ROLES)


@router.get("/dashboard-stats")
async def dashboard_stats(auth: AuthContext = Depends(require_staff)) -> dict:
    return analytics.get_dashboard_stats()


@router.get("/kpi-metrics")
async def kpi_metrics(auth: AuthContext = Depends(require_staff)) -> dict:
    return analytics.get_kpi_metrics()


@router.get("/recent-activity")
async def recent_activity(
    limit: int = Query(default=5, ge=1, le=50),
    auth: AuthContext = Depends(require_staff),
) -> list[dict]:
    return analytics.get_recent_activity(limit=limit)


@router.get("/class-level-analytics")
async def class_level_analytics(auth: AuthContext = Depends(require_staff)) -> list[dict]:
    return analytics.get_class_level_analytics()


@router.get("/subject-analytics")
async def subject_analytics(auth: AuthContext = Depends(require_staff)) -> list[dict]:
    return analytics.get_subject_analytics()


@router.get("/monthly-trends")
async def monthly_trends(
    months: int = Query(default=6, ge=1, le=24),
    auth: AuthContext = Depends(require_staff),
) -> list[dict]:
    return analytics.get_monthly_trends(months=months)
