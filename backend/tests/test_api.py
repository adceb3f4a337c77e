"""Test the scan session HTTP endpoints."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from receipt_consensus.main import app

client = TestClient(app)

T0 = datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)


def _frame(i: int, items, total=None) -> dict:
    ts = (T0 + timedelta(milliseconds=i * 100)).isoformat()
    return {
        "timestamp": ts,
        "received_at": ts,
        "positions": [{"product": p, "price": price} for p, price in items],
        "total": total,
        "store": "REWE",
    }


def _create_session(**settings) -> str:
    response = client.post("/api/scan/sessions", json={"settings": settings})
    assert response.status_code == 200, response.text
    return response.json()["session_id"]


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_session_with_defaults():
    response = client.post("/api/scan/sessions")
    assert response.status_code == 200
    body = response.json()
    assert body["session_id"]
    assert body["settings"]["similarity_threshold"] == 75


def test_create_session_with_invalid_settings():
    response = client.post("/api/scan/sessions", json={"settings": {"similarity_threshold": 150}})
    assert response.status_code == 422


def test_frames_merge_and_report_progress():
    session_id = _create_session()
    first = client.post(
        f"/api/scan/sessions/{session_id}/frames",
        json=_frame(0, [("ARLA MILCH 3,8%", "1.99")], total="3.98"),
    )
    second = client.post(
        f"/api/scan/sessions/{session_id}/frames",
        json=_frame(1, [("ARLA MILCH 3.8%", 1.99)], total="3.98"),
    )

    assert first.status_code == 200, first.text
    assert second.status_code == 200, second.text
    body = second.json()
    assert body["event"] == "progress"
    assert len(body["receipt"]["positions"]) == 1
    position = body["receipt"]["positions"][0]
    assert position["price"] == "1.99"
    assert position["member_count"] == 2
    assert position["operation"] == "updated"
    assert body["receipt"]["store"] == "REWE"
    assert body["progress"]["validation"]["status"] == "incomplete"
    assert body["progress"]["estimated_percentage"] == 50


def test_throttled_frame():
    session_id = _create_session(scan_interval_ms=1000)
    client.post(f"/api/scan/sessions/{session_id}/frames", json=_frame(0, [("BROT", "2.50")]))
    response = client.post(f"/api/scan/sessions/{session_id}/frames", json=_frame(1, [("BROT", "2.50")]))
    assert response.json()["event"] == "throttled"


def test_accept_and_reset():
    session_id = _create_session()
    client.post(
        f"/api/scan/sessions/{session_id}/frames",
        json=_frame(0, [("BROT", "2.50"), ("BUTTER", "2.35")], total="4.85"),
    )

    accepted = client.post(f"/api/scan/sessions/{session_id}/accept")
    assert accepted.status_code == 200
    receipt = accepted.json()["receipt"]
    assert [p["product"] for p in receipt["positions"]] == ["BROT", "BUTTER"]
    assert receipt["calculated_total"] == "4.85"
    assert receipt["is_valid"] is True

    reset = client.post(f"/api/scan/sessions/{session_id}/reset")
    assert reset.status_code == 200
    assert reset.json()["status"] == "reset"


def test_update_settings():
    session_id = _create_session()
    response = client.put(
        f"/api/scan/sessions/{session_id}/settings",
        json={"similarity_threshold": 90, "scan_timeout_ms": 5000},
    )
    assert response.status_code == 200
    assert response.json()["settings"]["similarity_threshold"] == 90
    assert response.json()["settings"]["scan_timeout_ms"] == 5000

    invalid = client.put(f"/api/scan/sessions/{session_id}/settings", json={"confirmation_quorum": 2})
    assert invalid.status_code == 422


def test_unknown_session_returns_404():
    assert client.post("/api/scan/sessions/missing/frames", json=_frame(0, [])).status_code == 404
    assert client.post("/api/scan/sessions/missing/accept").status_code == 404
    assert client.post("/api/scan/sessions/missing/reset").status_code == 404
    assert client.put("/api/scan/sessions/missing/settings", json={}).status_code == 404
    assert client.delete("/api/scan/sessions/missing").status_code == 404


def test_delete_session():
    session_id = _create_session()
    assert client.delete(f"/api/scan/sessions/{session_id}").status_code == 200
    assert client.post(f"/api/scan/sessions/{session_id}/accept").status_code == 404
    print("[OK] delete session")


def test_naive_and_missing_arrival_times_mix():
    session_id = _create_session()
    naive = _frame(0, [("BROT", "2.50")])
    naive["received_at"] = "2024-05-01T10:15:00"
    first = client.post(f"/api/scan/sessions/{session_id}/frames", json=naive)

    later = _frame(1, [("BROT", "2.50")])
    del later["received_at"]
    second = client.post(f"/api/scan/sessions/{session_id}/frames", json=later)

    assert first.status_code == 200, first.text
    assert second.status_code == 200, second.text
