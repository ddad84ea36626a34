# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Replication Exceptions - Custom exceptions for the ddbcrr package.

Transport failures (describe calls, client construction) are not wrapped:
botocore's own exceptions propagate unmodified.
"""


class ReplicationError(Exception):
    """Base exception for all replication errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ReplicationError):
    """Raised when configuration is invalid."""

    pass


class NoStreamFoundError(ConfigurationError):
    """Raised when the source table has no stream attached."""

    pass


class StreamNotReadyError(ConfigurationError):
    """Raised when the source stream cannot feed replication."""

    pass


class DelegateProcessingError(ReplicationError):
    """Raised when a delegate record processor fails a lifecycle call."""

    pass


class CheckpointError(ReplicationError):
    """Raised when checkpoint operations fail."""

    pass
