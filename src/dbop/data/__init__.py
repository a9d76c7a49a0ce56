"""Validated writes and primary-key lookups."""

from dbop.data.operations import TableOperations
from dbop.data.validation import ValidationEngine

__all__ = ["TableOperations", "ValidationEngine"]
