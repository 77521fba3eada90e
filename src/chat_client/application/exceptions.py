from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class ApiError(AppError):
    """The request/response collaborator rejected a call or was unreachable."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class SendFailedError(AppError):
    def __init__(self, detail: str = "", temp_id: str | None = None) -> None:
        self.temp_id = temp_id
        super().__init__(detail)


class ValidationError(AppError):
    pass


class ChannelClosedError(AppError):
    pass
