"""Logging configuration and utilities."""
import logging
import sys
from typing import Any, Dict

import structlog
from structlog.stdlib import LoggerFactory

from ..config import settings


def configure_logging(log_level: str = None):
    """Configure structured logging."""

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard logging
    level = (log_level or settings.monitoring.log_level).upper()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )

    # Set third-party log levels
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


class RequestLogger:
    """Request logging utility."""

    @staticmethod
    def log_request(
        method: str,
        path: str,
        client_id: str = None,
        request_id: str = None,
        extra_data: Dict[str, Any] = None
    ):
        """Log incoming request."""
        logger = structlog.get_logger("api.request")
        logger.info(
            "Request started",
            method=method,
            path=path,
            client_id=client_id,
            request_id=request_id,
            **(extra_data or {})
        )

    @staticmethod
    def log_response(
        method: str,
        path: str,
        status_code: int,
        response_time_ms: float,
        client_id: str = None,
        request_id: str = None,
        extra_data: Dict[str, Any] = None
    ):
        """Log response."""
        logger = structlog.get_logger("api.response")
        logger.info(
            "Request completed",
            method=method,
            path=path,
            status_code=status_code,
            response_time_ms=response_time_ms,
            client_id=client_id,
            request_id=request_id,
            **(extra_data or {})
        )


class BusinessLogger:
    """Business event logging utility."""

    @staticmethod
    def log_activity(action: str, data: Dict[str, Any] = None):
        """Log an activity-log entry as it is appended."""
        logger = structlog.get_logger("business.activity")
        logger.info(
            "Activity recorded",
            event_type=action,
            data=data or {}
        )

    @staticmethod
    def log_account_registered(account_id: str, email: str, role: str, backend: str):
        """Log account registration."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "Account registered",
            event_type="account_registered",
            account_id=account_id,
            email=email,
            role=role,
            backend=backend
        )

    @staticmethod
    def log_account_changed(
        account_id: str,
        change: str,
        actor: str = None,
        details: Dict[str, Any] = None
    ):
        """Log an administrative change to an account."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "Account changed",
            event_type="account_changed",
            account_id=account_id,
            change=change,
            actor=actor,
            **(details or {})
        )

    @staticmethod
    def log_opportunity_event(
        opportunity_id: str,
        action: str,
        actor: str = None,
        title: str = None
    ):
        """Log opportunity creation, update or deletion."""
        logger = structlog.get_logger("business.opportunity")
        logger.info(
            "Opportunity event",
            event_type=f"opportunity_{action}",
            opportunity_id=opportunity_id,
            actor=actor,
            title=title
        )

    @staticmethod
    def log_application_event(
        application_id: str,
        opportunity_id: str,
        status: str,
        actor: str = None
    ):
        """Log application submission or status change."""
        logger = structlog.get_logger("business.application")
        logger.info(
            "Application event",
            event_type="application_status",
            application_id=application_id,
            opportunity_id=opportunity_id,
            status=status,
            actor=actor
        )

    @staticmethod
    def log_message_sent(message_id: str, conversation_id: str, sender_id: str):
        """Log message delivery."""
        logger = structlog.get_logger("business.message")
        logger.info(
            "Message sent",
            event_type="message_sent",
            message_id=message_id,
            conversation_id=conversation_id,
            sender_id=sender_id
        )


class SecurityLogger:
    """Security event logging utility."""

    @staticmethod
    def log_login_attempt(
        email: str,
        success: bool,
        scope: str = None,
        failure_reason: str = None
    ):
        """Log login attempt."""
        logger = structlog.get_logger("security.auth")
        logger.info(
            "Login attempt",
            event_type="login_attempt",
            email=email,
            success=success,
            scope=scope,
            failure_reason=failure_reason
        )

    @staticmethod
    def log_account_locked(email: str, attempts: int, lock_until: str):
        """Log an email being locked out."""
        logger = structlog.get_logger("security.lockout")
        logger.warning(
            "Account locked",
            event_type="account_locked",
            email=email,
            attempts=attempts,
            lock_until=lock_until
        )

    @staticmethod
    def log_session_event(action: str, scope: str, session_id: str = None, reason: str = None):
        """Log session lifecycle events."""
        logger = structlog.get_logger("security.session")
        logger.info(
            "Session event",
            event_type=action,
            scope=scope,
            session_id=session_id,
            reason=reason
        )

    @staticmethod
    def log_unauthorized_access(
        path: str,
        scope: str = None,
        permissions: list = None,
        reason: str = None
    ):
        """Log unauthorized access attempt."""
        logger = structlog.get_logger("security.access")
        logger.warning(
            "Unauthorized access attempt",
            event_type="unauthorized_access",
            path=path,
            scope=scope,
            permissions=permissions,
            reason=reason
        )
