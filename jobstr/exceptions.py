# jobstr/exceptions.py
# SPDX-License-Identifier: Apache-2.0
"""
Exception types for jobstr.

Failure categories:
- Relay connectivity (retried with backoff, never surfaced to tool callers)
- Event validation (dropped and counted)
- Query outcomes (NotFound, InvalidArgument) surfaced as tool errors
- Configuration problems at startup
"""


class JobstrError(Exception):
    """Base exception for jobstr."""
    pass


class TransientNetworkError(JobstrError):
    """Relay unreachable, handshake failed, or the connection dropped."""

    def __init__(self, relay: str, message: str):
        super().__init__(f"{relay}: {message}")
        self.relay = relay
        self.message = message


class MalformedEvent(JobstrError):
    """An event or wire frame failed validation."""
    pass


class NotFound(JobstrError):
    """No current listing for the requested id."""

    def __init__(self, job_id: str):
        super().__init__(f"No job found with ID: {job_id}")
        self.job_id = job_id


class InvalidArgument(JobstrError):
    """A tool argument is missing or out of range."""
    pass


class ConfigurationError(JobstrError):
    """Raised when configuration validation fails."""
    pass


__all__ = [
    "JobstrError",
    "TransientNetworkError",
    "MalformedEvent",
    "NotFound",
    "InvalidArgument",
    "ConfigurationError",
]
