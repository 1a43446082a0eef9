"""
NFeX exceptions

Typed failures raised by the import pipeline. Every failure carries a
human-readable message plus a details dictionary so callers can act on it
(which path was missing, which invoice already exists, ...).

Hierarchy:
    NFeImportError
    ├── InvalidInput
    │   └── InvalidFieldValue
    ├── DocumentParseError
    ├── MissingRequiredField
    ├── DuplicateInvoice
    └── PersistenceFailure
"""

from typing import Any, Dict, Optional


class NFeImportError(Exception):
    """Base exception for all NF-e import failures"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InvalidInput(NFeImportError):
    """Raised when no usable document bytes or company were supplied"""
    pass


class InvalidFieldValue(InvalidInput):
    """Raised when a present source field cannot be coerced to its declared type"""

    def __init__(self, path: str, value: Any, expected: str = None):
        self.path = path
        self.value = value
        message = f"Invalid value for field '{path}': {value!r}"
        if expected:
            message = f"{message} (expected {expected})"
        super().__init__(message, {'path': path, 'value': value, 'expected': expected})


class DocumentParseError(NFeImportError):
    """Raised when the document parser rejects the bytes as malformed"""

    def __init__(self, reason: str, filename: Optional[str] = None):
        message = f"Failed to parse XML document: {reason}"
        super().__init__(message, {'filename': filename, 'reason': reason})


class MissingRequiredField(NFeImportError):
    """Raised when a mandatory substructure or field is absent"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Required field is missing from the document: {path}", {'path': path})


class DuplicateInvoice(NFeImportError):
    """Raised when an invoice with the same natural key is already recorded"""

    def __init__(self, key):
        self.key = key
        super().__init__(
            f"Invoice already imported: {key.describe()}",
            {'natural_key': key.as_dict()}
        )


class PersistenceFailure(NFeImportError):
    """Raised when the atomic commit of an invoice did not succeed"""

    def __init__(self, reason: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(
            f"Failed to persist invoice: {reason}",
            {'cause': type(cause).__name__ if cause else None}
        )


__all__ = [
    'NFeImportError',
    'InvalidInput',
    'InvalidFieldValue',
    'DocumentParseError',
    'MissingRequiredField',
    'DuplicateInvoice',
    'PersistenceFailure',
]
