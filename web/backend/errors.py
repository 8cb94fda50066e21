"""HTTP-facing errors rendered as {ok: false, message} envelopes."""


class ApiError(Exception):
    """Error with an explicit HTTP status and a human-readable message."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)
