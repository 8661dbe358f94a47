from dataclasses import dataclass

from fastapi import status


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class ServiceError(Exception):
    """Base for failures the routers translate into the response envelope.

    ``side_effects`` tells the client whether anything happened before the
    failure: ``"none"`` means nothing was applied, ``"partial"`` means some
    external work was done but the stored record is still consistent. Either
    way the request is safe to resubmit.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "Internal server error"
    upstream = False

    def __init__(self, message: str | None = None, *, side_effects: str = "none"):
        self.message = message or self.public_message
        self.side_effects = side_effects
        super().__init__(self.message)

    @property
    def errors(self) -> list[dict] | None:
        return None


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Validation failed"

    def __init__(self, errors: list[FieldError]):
        self.field_errors = list(errors)
        super().__init__(self.public_message)

    @property
    def errors(self) -> list[dict]:
        return [error.as_dict() for error in self.field_errors]


class ImageRejected(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Image validation failed"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)

    @property
    def errors(self) -> list[dict]:
        return [{"field": "image", "message": self.reason}]


class UploadFailed(ServiceError):
    public_message = "Failed to upload image"
    upstream = True


class StorageConflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    public_message = "Duplicate field value entered"

    def __init__(self, message: str | None = None, *, fields: list[str] | None = None, side_effects: str = "none"):
        self.fields = fields or []
        super().__init__(message, side_effects=side_effects)


class PersistenceFailed(ServiceError):
    public_message = "Failed to save record"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    public_message = "Not found"


class InvalidOperation(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid operation"


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "Unauthorized"
