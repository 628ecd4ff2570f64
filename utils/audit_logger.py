# N8S v2.1
import getpass
import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path

from config import AUDIT_LOG_FILE

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of audit events"""
    PORT_ADDED = "PORT_ADDED"
    ROUTE_ADDED = "ROUTE_ADDED"
    ROUTE_REMOVED = "ROUTE_REMOVED"
    ROUTE_REJECTED = "ROUTE_REJECTED"
    SETTINGS_CHANGED = "SETTINGS_CHANGED"
    CONFIG_REGENERATED = "CONFIG_REGENERATED"
    FLAGS_RECONCILED = "FLAGS_RECONCILED"
    PROXY_PROVISIONED = "PROXY_PROVISIONED"


class AuditLogger:
    """
    Append-only JSON-lines log of router changes
    """

    def __init__(self, log_file=AUDIT_LOG_FILE, enabled=True):
        self.enabled = enabled
        self.log_file = Path(log_file)

    def log_event(self, event_type: AuditEventType, target: str, details: dict = None):
        """Log an audit event. Write failures never break the operation."""
        if not self.enabled:
            return

        event = {
            'timestamp': datetime.now().isoformat(),
            'user': self._get_current_user(),
            'event_type': event_type.value,
            'target': target,
            'details': details or {}
        }

        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(event) + '\n')
        except OSError as e:
            logger.warning("Could not write audit log %s: %s", self.log_file, e)

    def _get_current_user(self):
        try:
            return getpass.getuser()
        except (KeyError, OSError):
            return "unknown"

    def get_recent_events(self, limit=100, event_type=None):
        """Get recent audit events, newest first"""
        if not self.log_file.exists():
            return []

        events = []
        with open(self.log_file, 'r', encoding='utf-8') as f:
            lines = f.readlines()[::-1]

        for line in lines:
            if not line.strip():
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                continue

            if event_type and event.get('event_type') != event_type.value:
                continue

            events.append(event)
            if len(events) >= limit:
                break

        return events
