from __future__ import annotations


class FilterError(Exception):
    """Base class for failures raised while evaluating a filter set."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class UnknownFieldError(FilterError):
    """A predicate or sort key names a field the record type does not expose.

    The engine never raises it: unknown fields are skipped. Callers that
    want strict validation can raise it from `FieldAccessorMap.require`.
    """


class TypeMismatchError(FilterError):
    pass


class UnsupportedModeError(FilterError):
    def __init__(self, message: str, *, field: str | None = None, mode: str | None = None):
        super().__init__(message, field=field)
        self.mode = mode


class UnsupportedDataTypeError(FilterError):
    pass


class MalformedRangeError(FilterError):
    pass
