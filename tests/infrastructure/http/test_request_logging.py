from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from cube_sessions.infrastructure.http.middleware import request_logging_middleware


def test_request_logging_middleware_logs_request_lifecycle(caplog) -> None:
    app = FastAPI()
    app.middleware("http")(request_logging_middleware)

    @app.get("/ping")
    def ping() -> dict[str, bool]:
        return {"ok": True}

    target_logger = logging.getLogger("cube_sessions.http")
    original_propagate = target_logger.propagate
    target_logger.propagate = False
    target_logger.addHandler(caplog.handler)
    target_logger.setLevel(logging.INFO)
    caplog.set_level(logging.INFO)

    try:
        client = TestClient(app)
        response = client.get("/ping", headers={"x-request-id": "req-42"})
    finally:
        target_logger.removeHandler(caplog.handler)
        target_logger.propagate = original_propagate

    assert response.status_code == 200
    assert response.headers["x-request-id"] == "req-42"

    records = [record for record in caplog.records if record.name == "cube_sessions.http"]
    received = next(record for record in records if record.msg == "request_received")
    completed = next(record for record in records if record.msg == "request_completed")

    assert received.data["request_id"] == "req-42"
    assert received.data["method"] == "GET"
    assert received.data["path"] == "/ping"
    assert completed.data["status_code"] == 200
    assert completed.data["duration_ms"] >= 0
