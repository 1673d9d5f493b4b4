from __future__ import annotations


class AlldunError(Exception):
    """Base class for recoverable errors raised by the services."""


class ValidationError(AlldunError):
    pass


class NotFound(AlldunError):
    pass


class InvalidState(AlldunError):
    """The operation is not legal for the current task or session state."""


class CaptureUnavailable(AlldunError):
    """No capture source could be presented (permission denied, no camera, ...)."""
