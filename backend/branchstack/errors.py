"""Error taxonomy shared by the lifecycle engine and the HTTP layer."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BranchStackError(Exception):
    """Base error; ``status_code`` is the HTTP status the API reports it as."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BranchStackError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnsupportedStrategyError(BranchStackError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BranchStackError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BranchStackError):
    status_code = status.HTTP_409_CONFLICT


class StorageError(BranchStackError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def install_exception_handlers(app: FastAPI) -> None:
    """Map engine errors onto JSON responses shaped like ``HTTPException`` bodies."""

    @app.exception_handler(BranchStackError)
    async def handle_branchstack_error(request: Request, exc: BranchStackError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error"},
        )
