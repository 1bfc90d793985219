"""
Domain error taxonomy.

Each error carries the HTTP status and public title the API renders it
with. ValidationError, NotFoundError, SelfReferenceError and ConflictError
are expected outcomes the caller can act on; StoreError means the store
failed and is rendered without internal detail.
"""


class ProfileServiceError(Exception):
    status_code = 500
    title = "Internal Server Error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.title


class ValidationError(ProfileServiceError):
    status_code = 400
    title = "Validation Error"


class NotFoundError(ProfileServiceError):
    status_code = 404
    title = "Not Found"


class SelfReferenceError(ProfileServiceError):
    status_code = 400
    title = "Bad Request"


class ConflictError(ProfileServiceError):
    status_code = 409
    title = "Conflict"


class StoreError(ProfileServiceError):
    status_code = 503
    title = "Service Unavailable"

    def __init__(self, message: str = "The data store is temporarily unavailable"):
        super().__init__(message)
