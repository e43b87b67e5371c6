class ObjectNotFoundException(Exception):
    """Exception raised when a document with the specified identifier does not exist."""

    def __init__(self, message: str = "The requested document was not found."):
        super().__init__(message)


class QueryArgumentError(ValueError):
    """Raised when a builder call receives an invalid argument (skip, take, index)."""


# --- Validation Exceptions ---
class ValidationError(TypeError):
    """Base class for validation errors related to model types."""


class InvalidExpressionError(ValidationError):
    """Error raised when a field descriptor is not a plain member chain."""


class InvalidPathError(InvalidExpressionError, AttributeError):
    """Error raised when a field path does not exist or is invalid for the model."""


class ValueTypeError(ValidationError):
    """Error raised when a value cannot be used with the requested operator or field."""
