#!/usr/bin/env python3
"""
Tests for the evaluation dashboard endpoints
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from api_builder.monitoring import APICall, MemoryUsage, utcnow


def record(service, endpoint="/api/orders", method="GET", status=200, duration=100.0, **kwargs):
    call = APICall(
        method=method,
        url=endpoint,
        endpoint=endpoint,
        status_code=status,
        duration=duration,
        success=status < 400,
        error=None if status < 400 else f"HTTP {status}",
        **kwargs,
    )
    service.track_call(call)
    return call


async def test_stats_counts_monitored_requests(client):
    for _ in range(3):
        await client.get("/api/projects")
    await client.get("/api/projects/missing")

    response = await client.get("/api/evaluation/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["total_calls"] == 4
    assert data["success_rate"] == 75.0
    assert data["by_endpoint"]["/api/projects"]["calls"] == 3
    assert data["by_endpoint"]["/api/projects/{project_id}"]["error_rate"] == 100.0
    assert data["by_status_code"] == {"200": 3, "404": 1}
    assert data["recent_errors"][0]["error"] == "HTTP 404"


async def test_stats_date_range(client, services):
    service = services.get_monitoring_service()
    record(service, timestamp=utcnow() - timedelta(days=2))
    record(service)

    start = (utcnow() - timedelta(hours=1)).isoformat()
    response = await client.get("/api/evaluation/stats", params={"startDate": start})

    assert response.json()["total_calls"] == 1


async def test_stats_rejects_inverted_range(client):
    response = await client.get(
        "/api/evaluation/stats",
        params={"startDate": "2024-02-01T00:00:00", "endDate": "2024-01-01T00:00:00"},
    )

    assert response.status_code == 400


async def test_dashboard(client, services):
    service = services.get_monitoring_service()
    for _ in range(6):
        record(service, duration=300.0)
    record(service, method="POST", status=500)

    memory = MemoryUsage(used=50, total=1000, percentage=5.0)
    with patch("api_builder.monitoring.read_memory_usage", return_value=memory):
        response = await client.get("/api/evaluation/dashboard")

    assert response.status_code == 200
    data = response.json()
    assert data["overview"]["total_requests"] == 7
    assert data["overview"]["memory_usage"] == {"used": 50, "total": 1000, "percentage": 5.0}
    assert data["charts"]["slowest_endpoints"][0]["endpoint"] == "/api/orders"
    assert data["charts"]["errors_by_endpoint"][0]["error_count"] == 1
    by_method = data["charts"]["requests_by_method"][0]
    assert (by_method["method"], by_method["count"]) == ("GET", 6)
    assert by_method["percentage"] == pytest.approx(600 / 7)
    assert data["sla"]["slo_target"] == 99.9


async def test_endpoint_health(client, services):
    record(services.get_monitoring_service(), duration=250.0)

    response = await client.get("/api/evaluation/endpoints")

    health = response.json()
    assert health[0]["endpoint"] == "/api/orders"
    assert health[0]["method"] == "GET"
    assert health[0]["average_response_time"] == 250.0


async def test_alert_lifecycle(client, services):
    record(services.get_monitoring_service(), duration=2500.0)

    alerts = (await client.get("/api/evaluation/alerts")).json()
    assert len(alerts) == 1
    assert alerts[0]["type"] == "latency"
    assert alerts[0]["severity"] == "warning"

    resolved = await client.post(f"/api/evaluation/alerts/{alerts[0]['id']}/resolve")
    assert resolved.json() == {"success": True, "message": "Alert resolved"}

    assert (await client.get("/api/evaluation/alerts")).json() == []
    history = (await client.get("/api/evaluation/alerts", params={"include_resolved": True})).json()
    assert history[0]["resolved"] is True

    again = await client.post(f"/api/evaluation/alerts/{alerts[0]['id']}/resolve")
    assert again.status_code == 404


async def test_system_metrics(client, services):
    service = services.get_monitoring_service()

    empty = (await client.get("/api/evaluation/system")).json()
    assert empty == {"current": None, "history": []}

    service.collect_system_metrics(MemoryUsage(used=100, total=1000, percentage=10.0))
    data = (await client.get("/api/evaluation/system", params={"hours": 1})).json()

    assert data["current"]["memory_usage"]["percentage"] == 10.0
    assert len(data["history"]) == 1


async def test_time_series(client, services):
    record(services.get_monitoring_service())

    response = await client.get("/api/evaluation/timeseries", params={"hours": 1})

    assert response.status_code == 200
    assert len(response.json()) == 1
    assert (await client.get("/api/evaluation/timeseries", params={"hours": 500})).status_code == 422


async def test_slow_endpoints(client, services):
    service = services.get_monitoring_service()
    record(service, duration=1500.0)
    record(service, duration=900.0)

    response = await client.get("/api/evaluation/slow-endpoints", params={"threshold": 1000})

    slow = response.json()
    assert slow[0]["endpoint"] == "/api/orders"
    assert slow[0]["slow_call_percentage"] == 50.0


async def test_error_analysis(client, services):
    service = services.get_monitoring_service()
    record(service, status=500)
    record(service, endpoint="/api/users", status=500)

    errors = (await client.get("/api/evaluation/errors")).json()

    assert errors[0]["error"] == "HTTP 500"
    assert errors[0]["count"] == 2
    assert sorted(errors[0]["endpoints"]) == ["/api/orders", "/api/users"]


async def test_recent_calls(client, services):
    service = services.get_monitoring_service()
    first = record(service)
    second = record(service)

    recent = (await client.get("/api/evaluation/recent", params={"limit": 2})).json()

    assert [c["id"] for c in recent] == [second.id, first.id]
    assert (await client.get("/api/evaluation/recent", params={"limit": 0})).status_code == 422


async def test_sla(client, services):
    record(services.get_monitoring_service(), status=500)

    sla = (await client.get("/api/evaluation/sla")).json()

    assert sla["actual_uptime"] == 0.0
    assert sla["breach_count"] == 0
    assert sla["mttr"] == 0.0
