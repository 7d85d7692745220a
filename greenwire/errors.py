"""
Exception types raised inside the pipeline.

Only ConfigurationError escapes a pipeline run; the others are caught at the
stage that owns the failing unit.
"""
from __future__ import annotations


class GreenwireError(Exception):
    pass


class ConfigurationError(GreenwireError):
    """Required secrets or configuration are missing."""


class FetchError(GreenwireError):
    """A single feed or search request failed."""


class OracleError(GreenwireError):
    """The scoring oracle could not be reached or returned an unusable response."""
