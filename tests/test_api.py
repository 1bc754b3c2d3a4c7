"""Tests for the HTTP surface: status codes, payload shape and the API key guard."""

import pytest
from fastapi.testclient import TestClient

from main import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("API_KEY", raising=False)
    return TestClient(app)


def _body(series, **extra):
    body = {"request": {"startDate": "2025-01-01", "endDate": "2025-01-03"}, "series": series}
    body.update(extra)
    return body


def test_health_check(client):
    res = client.get("/api/health/check")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_generate_returns_schedule(client, make_series):
    res = client.post(
        "/api/schedule/generate",
        json=_body([make_series("a", timeOfDay="07:30"), make_series("b")]),
    )
    assert res.status_code == 200
    data = res.json()
    assert data["status"] == "solved"
    assert len(data["schedule"]) == 6
    assert data["schedule"][0]["seriesId"] == "b"
    assert data["schedule"][1]["startTime"] == "2025-01-01T07:30"
    assert [row["Series"] for row in data["grid"]] == ["a", "b"]
    assert data["summary"][0]["Placed"] == 3
    assert data["issues"] == []


def test_structural_error_is_400(client, make_series):
    res = client.post("/api/schedule/generate", json=_body([make_series("a"), make_series("a")]))
    assert res.status_code == 400
    assert "Duplicate series ids" in res.json()["detail"]


def test_unsatisfiable_is_422_with_report(client, make_series):
    window = lambda lo, hi: {"timeWindow": {"earliest": lo, "latest": hi}}
    series = [
        make_series("a", bounds={"startDate": "2025-01-01", "endDate": "2025-01-01"}, timeOfDay="08:00", wiggle=window("08:00", "09:00")),
        make_series("b", bounds={"startDate": "2025-01-01", "endDate": "2025-01-01"}, timeOfDay="12:00", wiggle=window("12:00", "13:00")),
    ]
    constraints = [
        {"id": "c1", "type": "mustBeWithin", "source": {"seriesId": "a"}, "dest": {"seriesId": "b"}, "withinMinutes": 30}
    ]
    res = client.post("/api/schedule/generate", json=_body(series, constraints=constraints))
    assert res.status_code == 422
    detail = res.json()["detail"]
    assert detail["status"] == "unsatisfiable"
    assert detail["constraintIds"] == ["c1"]


def test_api_key_guard(client, monkeypatch, make_series):
    monkeypatch.setenv("API_KEY", "secret")
    body = _body([make_series("a")])
    assert client.post("/api/schedule/generate", json=body).status_code == 401
    res = client.post("/api/schedule/generate", json=body, headers={"x-api-key": "secret"})
    assert res.status_code == 200
    assert client.get("/api/health/check").status_code == 200


def test_wrong_api_key_is_rejected(client, monkeypatch, make_series):
    monkeypatch.setenv("API_KEY", "secret")
    res = client.post(
        "/api/schedule/generate", json=_body([make_series("a")]), headers={"x-api-key": "nope"}
    )
    assert res.status_code == 401
    assert res.json()["detail"] == "Unauthorized"


def test_openapi_marks_only_schedule_routes_as_guarded(client):
    paths = client.get("/openapi.json").json()["paths"]
    assert paths["/api/schedule/generate"]["post"]["security"] == [{"APIKeyHeader": []}]
    assert "security" not in paths["/api/health/check"]["get"]


def test_generate_applies_exceptions(client, make_series):
    exceptions = [
        {"seriesId": "a", "originalDate": "2025-01-02", "type": "cancelled"},
        {"seriesId": "a", "originalDate": "2025-01-03", "type": "rescheduled", "newTime": "2025-01-03T20:00"},
    ]
    res = client.post("/api/schedule/generate", json=_body([make_series("a")], exceptions=exceptions))
    assert res.status_code == 200
    schedule = res.json()["schedule"]
    assert [i["date"] for i in schedule] == ["2025-01-01", "2025-01-03"]
    assert schedule[1]["startTime"] == "2025-01-03T20:00"
    assert schedule[1]["rescheduledFrom"] == "2025-01-03"


def test_rescheduled_exception_without_time_is_400(client, make_series):
    exceptions = [{"seriesId": "a", "originalDate": "2025-01-02", "type": "rescheduled"}]
    res = client.post("/api/schedule/generate", json=_body([make_series("a")], exceptions=exceptions))
    assert res.status_code == 400
    assert "newTime" in res.json()["detail"]
