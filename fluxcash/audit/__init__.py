"""Audit logging package."""

from fluxcash.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
