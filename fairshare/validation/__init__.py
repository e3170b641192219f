"""Validation package."""

from fairshare.validation.validator import RecordValidator

__all__ = ["RecordValidator"]
