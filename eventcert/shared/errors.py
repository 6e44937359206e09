"""Exceptions raised by the certificate engine.

Every generation failure derives from :class:`CertificateError` and carries an
HTTP-style ``status`` plus the ``step`` and ``identifier`` involved, so callers
can log meaningfully and map to a response without parsing messages.
"""

from __future__ import annotations


class CertificateError(RuntimeError):
    """Base class for certificate generation failures."""

    status = 500

    def __init__(
        self,
        message: str,
        *,
        step: str | None = None,
        identifier: object | None = None,
    ) -> None:
        super().__init__(message)
        self.step = step
        self.identifier = identifier


class CertificateRequestError(CertificateError):
    """Raised when a required identifier is missing or malformed."""

    status = 400


class CertificateNotFoundError(CertificateError):
    """Raised when an attendee or event record does not exist."""

    status = 404


class AttendeeNotFoundError(CertificateNotFoundError):
    pass


class EventNotFoundError(CertificateNotFoundError):
    pass


class TemplateAssetError(CertificateError):
    """Raised when the background image cannot be fetched or decoded."""


class TemplateNotConfiguredError(CertificateError):
    """Raised by strict call sites when no stored template exists."""


class CertificateGenerationError(CertificateError):
    """Raised for any other failure while composing a document."""


class TemplateStoreError(RuntimeError):
    """Raised when the record store fails to read or write a template."""


class FieldValidationError(ValueError):
    """Raised when a text field definition is malformed."""


class EditorStateError(RuntimeError):
    """Raised when an editor operation is not allowed in the current state."""
