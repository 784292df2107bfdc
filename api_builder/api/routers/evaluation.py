#!/usr/bin/env python3
"""
FastAPI router for the evaluation dashboard
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query

from ...monitoring import APIAlert, APICall, EndpointHealth, SLAMetrics, utcnow
from ..dependencies import get_generation_manager, get_monitoring_service
from ..models.evaluation import (
    APIStatsResponse,
    DashboardResponse,
    ErrorGroup,
    ResolveAlertResponse,
    SlowEndpoint,
    SystemMetricsResponse,
    TimeSeriesPoint,
)

router = APIRouter(prefix="/evaluation", tags=["evaluation"])


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard():
    """Everything the dashboard renders in one payload"""
    return get_monitoring_service().get_dashboard_data()


@router.get("/stats", response_model=APIStatsResponse)
async def get_stats(
    start_date: Optional[datetime] = Query(None, alias="startDate", description="Range start"),
    end_date: Optional[datetime] = Query(None, alias="endDate", description="Range end"),
):
    """Aggregate request statistics, optionally within a time range"""
    start_date, end_date = _as_utc(start_date), _as_utc(end_date)
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")
    return get_monitoring_service().get_api_stats(start_date, end_date)


@router.get("/endpoints", response_model=List[EndpointHealth])
async def get_endpoint_health():
    """Health per METHOD:endpoint, busiest first"""
    return get_monitoring_service().get_endpoint_health_summary()


@router.get("/alerts", response_model=List[APIAlert])
async def get_alerts(include_resolved: bool = Query(False, description="Include resolved alerts")):
    service = get_monitoring_service()
    return service.get_all_alerts() if include_resolved else service.get_active_alerts()


@router.post("/alerts/{alert_id}/resolve", response_model=ResolveAlertResponse)
async def resolve_alert(alert_id: str):
    if not get_monitoring_service().resolve_alert(alert_id):
        raise HTTPException(status_code=404, detail="Alert not found or already resolved")
    return ResolveAlertResponse(success=True, message="Alert resolved")


@router.get("/system", response_model=SystemMetricsResponse)
async def get_system_metrics(hours: Optional[int] = Query(None, ge=1, description="Look-back window")):
    """Latest system snapshot plus history"""
    service = get_monitoring_service()
    start = utcnow() - timedelta(hours=hours) if hours else None
    return SystemMetricsResponse(
        current=service.get_current_health(),
        history=service.get_system_metrics(start=start),
    )


@router.get("/timeseries", response_model=List[TimeSeriesPoint])
async def get_time_series(hours: int = Query(24, ge=1, le=168, description="Look-back window")):
    return get_monitoring_service().get_time_series_data(hours)


@router.get("/slow-endpoints", response_model=List[SlowEndpoint])
async def get_slow_endpoints(threshold: float = Query(1000, gt=0, description="Threshold in milliseconds")):
    return get_monitoring_service().get_slow_endpoints(threshold)


@router.get("/errors", response_model=List[ErrorGroup])
async def get_error_analysis():
    return get_monitoring_service().get_error_analysis()


@router.get("/recent", response_model=List[APICall])
async def get_recent_calls(limit: int = Query(100, ge=1, le=1000, description="Number of calls")):
    """Most recent calls, newest first"""
    return get_monitoring_service().get_recent_calls(limit)


@router.get("/sla", response_model=SLAMetrics)
async def get_sla():
    return get_monitoring_service().get_sla_metrics()


@router.get("/workflows", response_model=Dict[str, Any])
async def get_workflow_analysis():
    """Success rates of generation stages and other workflow steps"""
    return get_generation_manager().workflow.get_workflow_analysis()
