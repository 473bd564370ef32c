"""Tests for the in-memory log buffer and /api/system/logs."""

from __future__ import annotations

import logging

from backend.src.api.routes import system


def test_logs_endpoint_returns_buffered_records(api_client) -> None:
    system.LOG_BUFFER.clear()

    api_client.post("/api/graphs", json={"name": "Logged"})
    logs = api_client.get("/api/system/logs").json()

    created = [entry for entry in logs if entry["message"].startswith("Created graph")]
    assert created
    assert created[0]["logger"] == "backend.src.services.graph_service"
    assert created[0]["level"] == "INFO"


def test_extra_fields_are_captured() -> None:
    system.LOG_BUFFER.clear()
    handler = system.install_memory_handler()

    record = logging.LogRecord("contextory.test", logging.INFO, __file__, 1, "hello", None, None)
    record.tool_name = "get_graph"
    record.payload = {"nested": True}
    handler.emit(record)

    (entry,) = list(system.LOG_BUFFER)
    assert entry["message"] == "hello"
    assert entry["extra"] == {"tool_name": "get_graph", "payload": "{'nested': True}"}


def test_handler_installed_once() -> None:
    assert system.install_memory_handler() is system.install_memory_handler()
    assert system.LOG_BUFFER.maxlen == 100
