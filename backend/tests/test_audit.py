"""Tests for the denial audit reporter."""

import json
import logging

import pytest
from starlette.requests import Request

from wms.models.access_denial import AccessDenial
from wms.rbac.audit import AuditReporter, DenialEvent


def make_request(path="/api/users", headers=None, client=("10.1.2.3", 51000)) -> Request:
    scope = {
        "type": "http",
        "method": "PUT",
        "path": path,
        "query_string": b"",
        "headers": headers if headers is not None else [(b"user-agent", b"pytest-agent")],
        "client": client,
        "server": ("test", 80),
        "scheme": "http",
    }
    return Request(scope)


class FakeSession:
    def __init__(self):
        self.added = []
        self.committed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def add(self, obj):
        self.added.append(obj)

    async def commit(self):
        self.committed = True


def broken_session_factory():
    raise RuntimeError("pool exhausted")


@pytest.mark.unit
class TestDenialEvent:
    def test_from_request_captures_client_metadata(self):
        event = DenialEvent.from_request(make_request(), "u-1", "ROLE_DENIED", "Requires one of: admin")

        assert event.resource == "/api/users"
        assert event.client_metadata == {
            "method": "PUT",
            "user_agent": "pytest-agent",
            "ip": "10.1.2.3",
        }

    def test_missing_metadata_defaults_to_unknown(self):
        event = DenialEvent.from_request(
            make_request(headers=[], client=None), None, "AUTHENTICATION_REQUIRED", "Authentication required"
        )
        assert event.user_id is None
        assert event.client_metadata["user_agent"] == "unknown"
        assert event.client_metadata["ip"] == "unknown"


@pytest.mark.unit
class TestAuditReporter:
    def test_logs_structured_warning(self, caplog):
        reporter = AuditReporter(persist=False)
        event = DenialEvent.from_request(make_request(), "u-1", "PERMISSION_DENIED", "Missing required permission: manage_users")

        with caplog.at_level(logging.WARNING, logger="wms.audit"):
            reporter.record_denial(event)

        record = caplog.records[-1]
        assert record.name == "wms.audit"
        assert record.getMessage().startswith("[PERMISSION_DENIED] ")
        payload = json.loads(record.getMessage().split(" ", 1)[1])
        assert payload["user_id"] == "u-1"
        assert payload["reason_code"] == "PERMISSION_DENIED"
        assert payload["ip"] == "10.1.2.3"

    def test_never_raises_without_event_loop(self, caplog):
        reporter = AuditReporter(session_factory=FakeSession, persist=True)
        event = DenialEvent.from_request(make_request(), "u-1", "ROLE_DENIED", "denied")

        with caplog.at_level(logging.ERROR, logger="wms.audit"):
            reporter.record_denial(event)

        assert "Failed to record access denial" in caplog.text

    @pytest.mark.asyncio
    async def test_persists_denial_row(self):
        session = FakeSession()
        reporter = AuditReporter(session_factory=lambda: session, persist=True)
        reporter.record_denial(
            DenialEvent.from_request(make_request(), "u-1", "WAREHOUSE_ACCESS_DENIED", "no UBB")
        )
        await reporter.drain()

        assert session.committed
        (row,) = session.added
        assert isinstance(row, AccessDenial)
        assert row.reason_code == "WAREHOUSE_ACCESS_DENIED"
        assert row.client_metadata["method"] == "PUT"

    @pytest.mark.asyncio
    async def test_persistence_failure_is_swallowed(self, caplog):
        reporter = AuditReporter(session_factory=broken_session_factory, persist=True)

        with caplog.at_level(logging.ERROR, logger="wms.audit"):
            reporter.record_denial(
                DenialEvent.from_request(make_request(), "u-1", "ROLE_DENIED", "denied")
            )
            await reporter.drain()

        assert "Failed to persist access denial" in caplog.text
