#!/usr/bin/env python3
"""
Pydantic models for evaluation dashboard endpoints
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from ...monitoring import (
    APIAlert,
    APICall,
    EndpointHealth,
    MemoryUsage,
    SLAMetrics,
    SystemMetrics,
)


class EndpointStats(BaseModel):
    calls: int = Field(..., description="Calls to the endpoint")
    avg_response_time: float = Field(..., description="Mean duration in milliseconds")
    error_rate: float = Field(..., description="Failed share in percent")


class RecentError(BaseModel):
    timestamp: datetime
    method: str
    url: str
    status_code: Optional[int] = None
    error: Optional[str] = None
    duration: float


class APIStatsResponse(BaseModel):
    """Aggregate request statistics"""
    total_calls: int = Field(..., description="Calls in range")
    success_rate: float = Field(..., description="Successful share in percent")
    average_response_time: float = Field(..., description="Mean duration in milliseconds")
    calls_per_minute: float = Field(..., description="Calls per minute over the range")
    error_rate: float = Field(..., description="Failed share in percent")
    by_endpoint: Dict[str, EndpointStats] = Field(default_factory=dict, description="Breakdown per endpoint")
    by_status_code: Dict[str, int] = Field(default_factory=dict, description="Counts per status code")
    recent_errors: List[RecentError] = Field(default_factory=list, description="Last ten failed calls")


class SystemMetricsResponse(BaseModel):
    current: Optional[SystemMetrics] = Field(None, description="Latest snapshot")
    history: List[SystemMetrics] = Field(default_factory=list, description="Snapshots in range")


class TimeSeriesPoint(BaseModel):
    timestamp: datetime = Field(..., description="Start of the 5-minute bucket")
    requests_per_minute: float
    average_response_time: float
    error_rate: float


class SlowEndpoint(BaseModel):
    endpoint: str
    average_response_time: float
    call_count: int
    slow_call_percentage: float


class ErrorGroup(BaseModel):
    error: str = Field(..., description="Error message")
    count: int
    percentage: float = Field(..., description="Share of all failed calls")
    endpoints: List[str]


class SlowestEndpoint(BaseModel):
    endpoint: str
    method: str
    average_response_time: float
    total_requests: int


class EndpointErrors(BaseModel):
    endpoint: str
    error_count: int
    error_rate: float


class MethodCount(BaseModel):
    method: str
    count: int
    percentage: float


class DashboardOverview(BaseModel):
    uptime: float = Field(..., description="Milliseconds since monitoring started")
    total_requests: int
    requests_per_minute: int
    average_response_time: float
    error_rate: float
    success_rate: float
    memory_usage: MemoryUsage


class DashboardCharts(BaseModel):
    time_series: List[TimeSeriesPoint]
    slowest_endpoints: List[SlowestEndpoint]
    errors_by_endpoint: List[EndpointErrors]
    requests_by_method: List[MethodCount]


class DashboardResponse(BaseModel):
    """Everything the evaluation dashboard renders"""
    overview: DashboardOverview
    endpoints: List[EndpointHealth]
    recent_calls: List[APICall]
    alerts: List[APIAlert]
    charts: DashboardCharts
    sla: SLAMetrics


class ResolveAlertResponse(BaseModel):
    success: bool
    message: str
