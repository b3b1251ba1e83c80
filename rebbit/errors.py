"""
Error envelope for the API.

- request validation failures: 400 ``{"errors": [{"msg", "param", "location"}]}``
- business-rule 400s raised through :func:`field_error`: same envelope
- every other ``HTTPException``: ``{"msg": detail}``
- anything unexpected: logged with its traceback, 500 plain-text ``Server error``
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

# User-facing message per request field, keyed by wire name.
FIELD_MESSAGES: dict[str, str] = {
    "pseudo": "Pseudo is required",
    "newPseudo": "Pseudo is required",
    "email": "Please enter a valid email",
    "newEmail": "Please enter a valid email",
    "password": "Please enter a password with 6 or more characters",
    "newPassword": "Please enter a new password with 6 or more characters",
    "currentPassword": "Current password is required",
    "birthdate": "Please enter your birthdate",
    "token": "Token is required",
    "title": "Title is required",
    "content": "Content is required",
    "tags": "Tags are required",
    "state": "State must be one of draft, published, archived",
    "images": "Images must be a list",
    "post": "Post is required",
    "ids": "Ids must be a list of user ids",
}


def field_error(msg: str, status_code: int = 400) -> HTTPException:
    """Build an ``HTTPException`` rendered with the validation envelope."""
    return HTTPException(status_code=status_code, detail={"errors": [{"msg": msg}]})


def _format_validation_error(error: dict) -> dict:
    loc = [str(part) for part in error.get("loc", ()) if not isinstance(part, int)]
    location = loc[0] if loc else "body"
    param = loc[1] if len(loc) > 1 else location
    msg = FIELD_MESSAGES.get(param)
    if msg is None:
        msg = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
    return {"msg": msg, "param": param, "location": location}


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [_format_validation_error(e) for e in exc.errors()]
    return JSONResponse(status_code=400, content={"errors": errors})


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"msg": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return PlainTextResponse("Server error", status_code=500)


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
