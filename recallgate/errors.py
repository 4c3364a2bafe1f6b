"""Shared error types for recallgate.

Goal: a bad policy or a flaky backend must never abort a turn.
Only explicit store writes and backend calls raise; the activation and
scoring paths degrade to safe defaults and log instead.
"""


class RecallgateError(Exception):
    """Base error for recallgate."""


class PolicyStoreError(RecallgateError):
    """Policy metadata file could not be written (or read for a write)."""


class BackendError(RecallgateError):
    """Vector backend query failed (network/index/etc.)."""
