from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

from .exceptions import SchoolConnectError

logger = logging.getLogger(__name__)

async def schoolconnect_exception_handler(request: Request, exc: SchoolConnectError):
    """Handle domain exceptions raised by services"""
    logger.warning(f"{exc.code.value}: {exc.message} - Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code.value, "type": exc.__class__.__name__}
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unexpected error: {str(exc)} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "type": "InternalError"}
    )

def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(SchoolConnectError, schoolconnect_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
