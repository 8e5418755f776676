# happiness/errors.py
"""
Error types raised by the report pipeline.

All of them subclass ValueError so callers that already guard against bad
inputs with `except ValueError` keep working.
"""
from __future__ import annotations


class SchemaError(ValueError):
    """Required column absent, non-numeric factor, or datasets to merge disagree."""


class PartitionError(ValueError):
    """Train fraction outside (0, 1) or a split that would leave one side empty."""


class DegenerateFitError(ValueError):
    """Too few rows for the number of predictors, or a rank-deficient design matrix."""
