from fastapi import Request, status
from fastapi.responses import JSONResponse


class CopierError(Exception):
    """Base error; `context` holds the identifying fields (account name, command id, ...)."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFound(CopierError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(CopierError):
    status_code = status.HTTP_409_CONFLICT


class DatastoreUnavailable(CopierError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


async def copier_error_handler(request: Request, exc: CopierError) -> JSONResponse:
    body = {"error": exc.message, "retryable": exc.retryable}
    body.update({k: str(v) for k, v in exc.context.items()})
    return JSONResponse(status_code=exc.status_code, content=body)
