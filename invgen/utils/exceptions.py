from typing import Optional

from fastapi import HTTPException, status


class BadRequestException(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class UnauthorizedException(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundException(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictException(HTTPException):
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class DuplicateRecordError(Exception):
    """A write collided with a uniqueness constraint."""


class StorageError(Exception):
    """Object storage call failed."""


class MailDeliveryError(Exception):
    """The mail provider refused or could not be reached."""


class PDFRenderError(Exception):
    """Invoice could not be rendered to PDF."""


class InvoiceSendError(Exception):
    """One step of the send workflow failed.

    ``step`` is one of ``render``, ``storage`` or ``email``.
    """

    def __init__(self, step: str, message: Optional[str] = None):
        self.step = step
        super().__init__(message or f"Invoice send failed at step '{step}'")
