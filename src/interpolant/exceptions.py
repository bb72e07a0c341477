"""Interpolant Exceptions

Custom exceptions for the interpolation engine.
"""

from __future__ import annotations


class InterpolantError(Exception):
    """Base exception for all interpolant errors."""

    pass


class CompileError(InterpolantError):
    """Raised when a template cannot be compiled into a renderer."""

    def __init__(self, message: str, template: str | None = None):
        self.template = template
        super().__init__(message)


class ExpressionError(InterpolantError):
    """Raised when an expression fails while a template is being rendered."""

    def __init__(self, expression: str, cause: BaseException | str):
        self.expression = expression
        self.cause = cause
        super().__init__(f"Expression '${{{expression}}}' failed: {cause}")


class PartialDefinitionError(InterpolantError):
    """Raised when a partial fragment cannot be constructed."""

    pass


class PartialAlreadyExistsError(InterpolantError):
    """Raised when registering a partial whose identity is already taken."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"Partial '{identity}' already exists in the collection")


class SchemaSpecError(InterpolantError):
    """Raised when a locals schema spec cannot be compiled."""

    pass


class CaptureIOError(InterpolantError):
    """Raised when captured output cannot be persisted."""

    def __init__(self, path: str, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to capture output to {path}: {cause}")


class ConfigError(InterpolantError):
    """Raised when configuration cannot be loaded."""

    pass
