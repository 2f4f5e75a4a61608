class ChatError(Exception):
    """Base error. `message` is shown to the user verbatim."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ChatError):
    status_code = 400


class AuthError(ChatError):
    status_code = 401


class Forbidden(ChatError):
    status_code = 403


class NotFound(ChatError):
    status_code = 404


class ConflictError(ChatError):
    status_code = 409


class PayloadTooLarge(ChatError):
    status_code = 413


class InternalError(ChatError):
    status_code = 500


class StorageError(InternalError):
    pass
