"""Tests for utils.audit_logger."""

from utils.audit_logger import AuditEventType, AuditLogger


class TestAuditLogger:
    def test_events_newest_first(self, tmp_path) -> None:
        audit = AuditLogger(tmp_path / "audit.log")
        audit.log_event(AuditEventType.PORT_ADDED, "9443")
        audit.log_event(AuditEventType.ROUTE_ADDED, "9443:/x/", {"name": "x1"})

        events = audit.get_recent_events()

        assert [e["event_type"] for e in events] == ["ROUTE_ADDED", "PORT_ADDED"]
        assert events[0]["details"] == {"name": "x1"}

    def test_filter_by_type(self, tmp_path) -> None:
        audit = AuditLogger(tmp_path / "audit.log")
        audit.log_event(AuditEventType.PORT_ADDED, "9443")
        audit.log_event(AuditEventType.ROUTE_ADDED, "9443:/x/")

        events = audit.get_recent_events(event_type=AuditEventType.PORT_ADDED)

        assert [e["target"] for e in events] == ["9443"]

    def test_disabled(self, tmp_path) -> None:
        audit = AuditLogger(tmp_path / "audit.log", enabled=False)
        audit.log_event(AuditEventType.PORT_ADDED, "9443")
        assert audit.get_recent_events() == []

    def test_unwritable_log_does_not_raise(self, tmp_path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        audit = AuditLogger(blocker / "audit.log")
        audit.log_event(AuditEventType.PORT_ADDED, "9443")

    def test_store_records_route_changes(self, store, config) -> None:
        config = store.add_route(config, 1440, "/api/", "api1", 8080)
        store.remove_route(config, "api1")

        types = [e["event_type"] for e in store.audit.get_recent_events()]

        assert types[:2] == ["ROUTE_REMOVED", "ROUTE_ADDED"]
