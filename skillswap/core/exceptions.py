from fastapi import status


class SkillSwapError(Exception):
    """Base class for errors the API reports back to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(SkillSwapError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ForbiddenError(SkillSwapError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class ConflictError(SkillSwapError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class ValidationError(SkillSwapError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class SelfReferenceError(SkillSwapError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "self_reference"


class DuplicateKeyError(Exception):
    """Raised by a store when an insert or update violates a unique key."""

    def __init__(self, table: str, key: str = ""):
        super().__init__(f"Duplicate key on {table} {key}".strip())
        self.table = table
        self.key = key
