"""
Audit logging infrastructure for confidential score disclosures.
"""

from confidential_checks.infrastructure.audit.audit_logger import AuditLogger, audit_logger

__all__ = ["AuditLogger", "audit_logger"]
