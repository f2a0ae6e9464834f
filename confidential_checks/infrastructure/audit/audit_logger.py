"""
AuditLogger - audit trail for confidential score disclosures.

Every creation of a check and every disclosure of a risk score (fresh
verification or a read of an already verified value) is recorded with the
acting account, the record, and the ledger transaction.

Usage:
    from confidential_checks.infrastructure.audit import audit_logger

    await audit_logger.log_disclosure(
        actor="0xabc...",
        candidate_id="check-1700000000000",
        outcome="verified",
        tx_hash="0x...",
    )

Design Principles:
- Audit entries go to a dedicated structured logger ("audit")
- Never fail the operation if audit logging fails
- Never include the clear score or any proof material
"""

from datetime import datetime, timezone
from typing import Any

from confidential_checks.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)
_audit_stream = get_logger("audit")


class AuditLogger:
    """Structured audit trail for check lifecycle events."""

    @staticmethod
    async def log(
        actor: str | None,
        action: str,
        resource_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        Write an audit event.

        Returns:
            True if logged successfully, False if failed (never raises)
        """
        try:
            _audit_stream.info(
                "Audit event",
                audit_action=action,
                actor=actor,
                resource_type="background_check",
                resource_id=resource_id,
                metadata=metadata or {},
                recorded_at=datetime.now(timezone.utc).isoformat(),
            )
            return True
        except Exception as e:
            # Never fail the operation because the audit trail is unavailable
            logger.error(
                "CRITICAL: Failed to write audit event",
                error=str(e),
                error_type=type(e).__name__,
                action=action,
                actor=actor,
                resource_id=resource_id,
            )
            return False

    @staticmethod
    async def log_disclosure(
        actor: str | None,
        candidate_id: str,
        outcome: str,
        tx_hash: str | None = None,
    ) -> bool:
        """
        Record that a risk score was disclosed to `actor`.

        Args:
            outcome: "verified" for a fresh proof exchange, "already_verified"
                for a read of a value the ledger already holds
        """
        return await AuditLogger.log(
            actor=actor,
            action="risk_score_disclosed",
            resource_id=candidate_id,
            metadata={"outcome": outcome, "tx_hash": tx_hash},
        )

    @staticmethod
    async def log_creation(actor: str | None, candidate_id: str, tx_hash: str) -> bool:
        return await AuditLogger.log(
            actor=actor,
            action="background_check_created",
            resource_id=candidate_id,
            metadata={"tx_hash": tx_hash},
        )


audit_logger = AuditLogger()
