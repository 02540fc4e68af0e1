"""
Audit sink writing decision records through loguru.

Records are bound with ``audit=True`` so a deployment can route them to a
dedicated sink, e.g. ``logger.add(path, filter=lambda r: r["extra"].get("audit"))``.
"""
from loguru import logger

from ...domain.value_objects.audit_record import DecisionAuditRecord


class LoggingAuditSink:
    """AuditSinkProtocol implementation backed by the engine logger."""

    def __init__(self, level: str = "INFO", denials_only: bool = False):
        self.level = level
        self.denials_only = denials_only
        self._logger = logger.bind(audit=True)

    async def record(self, record: DecisionAuditRecord) -> None:
        """Log one decision."""
        if self.denials_only and record.allowed:
            return
        outcome = "ALLOW" if record.allowed else "DENY"
        target = record.resource_type or "*"
        if record.resource_id:
            target = f"{target}/{record.resource_id}"
        self._logger.bind(**record.to_dict()).log(
            self.level,
            f"permission {outcome} user={record.user_id} code={record.permission_code} "
            f"resource={target} grant={record.matched_grant_id} error={record.error_code}"
        )
