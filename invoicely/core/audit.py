"""
Audit logging for security-critical operations.

Logs authentication events and every change to owned records
for compliance, investigation, and monitoring purposes.

LOGGING SENSITIVE DATA: Passwords and tokens are never written here.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for security-critical events."""

    @staticmethod
    def log_authentication(
        action: str,  # "login", "logout", "register", "idp_login"
        email: str,
        ip_address: str,
        success: bool,
        reason: str = "",
    ):
        """
        Log authentication events.

        Usage:
            AuditLog.log_authentication("login", "user@example.com", "192.168.1.1", True)
            AuditLog.log_authentication("login", "user@example.com", "192.168.1.1", False, reason="Invalid password")
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"auth.{action}",
            "email": email,
            "ip_address": ip_address,
            "success": success,
        }

        if reason and not success:
            log_entry["reason"] = reason

        if success:
            audit_logger.info(json.dumps(log_entry))
        else:
            audit_logger.warning(json.dumps(log_entry))

    @staticmethod
    def log_action(
        action: str,  # "create", "update", "delete", "send", "status"
        resource_type: str,  # "invoice", "client", "product", "user"
        resource_id: int,
        user_id: int,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log changes to owned records.

        Usage:
            AuditLog.log_action("send", "invoice", 123, current_user.id)
            AuditLog.log_action("status", "invoice", 123, current_user.id, changes={"status": "paid"})
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"{resource_type}.{action}",
            "user_id": user_id,
            "resource_id": resource_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_security_event(
        event_type: str,  # "password_changed", "idp_linked"
        user_id: int,
        details: Optional[str] = None,
    ):
        log_entry = {
            "timestamp": _now(),
            "event_type": f"security.{event_type}",
            "user_id": user_id,
        }

        if details:
            log_entry["details"] = details

        audit_logger.info(json.dumps(log_entry))
