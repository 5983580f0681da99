"""
Custom exceptions for the relq.io module.

Purpose
- Provide IO-layer specific error types for configuration loading and DataFrame
  interop.
- Keep relq.core as the source of truth for query errors (see relq.core.errors).

Source of truth and boundaries
- relq.core.errors.* are raised by relation construction, spec models, and the engine.
- relq.io raises Io* errors:
  - IoConfigError: invalid configuration values or unreadable TOML.
  - IoSchemaError: a polars frame cannot be represented as a Relation (or back).

Notes
- These exceptions do not perform any IO and are stdlib-only.
"""

from __future__ import annotations


class IoError(Exception):
    """
    Base class for IO-related errors in relq.io.

    Notes:
        Use this as a catch-all for IO-layer failures, distinct from relq.core errors.
    """


class IoConfigError(IoError):
    """
    Raised when configuration is invalid.

    Examples:
        - max_workers < 1
        - RELQ_MAX_DEPTH set to a non-integer
    """


class IoSchemaError(IoError):
    """
    Raised when a DataFrame's dtypes cannot be mapped to relq column types.

    Notes:
        Under QuerySettings(strict_schema=False) unsupported columns are dropped
        instead of raising.
    """
