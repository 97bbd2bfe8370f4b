"""Exceptions raised by survey_engine client components."""


class BackendError(Exception):
    """A remote call failed (network error or non-success response).

    ``status_code`` is the HTTP status when the server answered, None for
    transport failures.  Builder and response session catch this and turn
    it into a status message; it never propagates further.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
