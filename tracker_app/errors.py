"""Error taxonomy and the result object returned by every lifecycle operation."""
from dataclasses import dataclass
from typing import Any, Optional


class TrackerError(Exception):
    """Base class for failures surfaced to callers."""

    code = 'error'

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self):
        data = {'code': self.code, 'message': self.message}
        if self.field:
            data['field'] = self.field
        return data


class ValidationError(TrackerError):
    """Input violates a schema rule; the write was never attempted."""
    code = 'validation_error'


class NotFoundError(TrackerError):
    """A referenced project or task does not exist at write time."""
    code = 'not_found'


class ConflictError(TrackerError):
    """The stored version no longer matches the version the caller read."""
    code = 'conflict'


class StoreError(TrackerError):
    """The database refused or failed the write."""
    code = 'store_error'


class AIAdapterError(TrackerError):
    """The suggestion service failed or returned output we could not parse."""
    code = 'ai_adapter_error'


@dataclass
class OperationResult:
    success: bool
    value: Any = None
    error: Optional[TrackerError] = None

    @classmethod
    def ok(cls, value=None):
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error):
        return cls(success=False, error=error)

    def to_dict(self):
        if self.success:
            return {'success': True, 'value': self.value}
        return {'success': False, 'error': self.error.to_dict()}
