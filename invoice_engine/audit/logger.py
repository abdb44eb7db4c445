"""
Audit Logger

DESIGN DECISION: Every totals request is logged, never inside the engine
itself (it stays pure) but around it, by the flow that calls it. This gives:
1. Traceability from an issued invoice back to its exact input
2. Debugging capability when a total is disputed
3. Compliance readiness

The audit logger:
- Is async so a slow audit store never blocks the caller's event loop
- Gracefully handles storage failures (a failed audit write is logged, not raised)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from invoice_engine.config import get_settings
from invoice_engine.models.audit import AuditEvent, AuditEventBuilder
from invoice_engine.services.storage import AuditStorageInterface


def configure_logging() -> None:
    """Configure structlog on top of stdlib logging from LoggingSettings."""
    log_settings = get_settings().logging

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_settings.level),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if log_settings.json_output
        else structlog.dev.ConsoleRenderer()
    )

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
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_validation_passed(
        self,
        request_id: UUID,
        warning_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a successful validation."""
        event = AuditEventBuilder.validation_passed(
            request_id=request_id,
            warning_count=warning_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        request_id: UUID,
        stage: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            request_id=request_id,
            stage=stage,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_totals_calculated(
        self,
        request_id: UUID,
        line_count: int,
        totals: dict,
        currency: str,
        correlation_id: UUID,
    ) -> None:
        """Log a completed totals calculation."""
        event = AuditEventBuilder.totals_calculated(
            request_id=request_id,
            line_count=line_count,
            totals=totals,
            currency=currency,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a totals request and pass it through
    all subsequent operations.
    """
    return uuid4()
