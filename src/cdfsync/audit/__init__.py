"""Presence and hash audit of tracked entities."""

from .audit import AuditResult, TrackingAudit

__all__ = ["AuditResult", "TrackingAudit"]
