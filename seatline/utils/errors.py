"""Typed application errors, one per failure code returned by the API."""


class AppError(Exception):
    status_code = 500
    code = "INTERNAL"

    def __init__(self, message: str | None = None, code: str | None = None):
        if code is not None:
            self.code = code
        self.message = message or self.code
        super().__init__(self.message)


class InvalidInput(AppError):
    status_code = 400
    code = "INVALID_INPUT"


class SeatOutOfRange(AppError):
    status_code = 400
    code = "SEAT_OUT_OF_RANGE"


class RoleNotFound(AppError):
    status_code = 404
    code = "ROLE_NOT_FOUND"


class TableNotFound(AppError):
    status_code = 404
    code = "TABLE_NOT_FOUND"


class MessageNotFound(AppError):
    status_code = 404
    code = "MESSAGE_NOT_FOUND"


class SeatTaken(AppError):
    status_code = 409
    code = "SEAT_TAKEN"


class RoleExists(AppError):
    status_code = 409
    code = "ROLE_EXISTS"
