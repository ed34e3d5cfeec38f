"""Onboarding engine: stage progression, task ledger, assessments and reminders."""

__version__ = "0.1.0"
