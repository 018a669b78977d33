from typing import Optional
from fastapi import HTTPException

class APIError(HTTPException):
    """HTTP error rendered as an OpenAI-style ``{"error": {...}}`` body."""

    status_code_default = 500
    error_type = "internal_server_error"

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        status = status_code or self.status_code_default
        payload = {
            "error": {
                "message": message,
                "type": self.error_type,
                "param": None,
                "code": code or self.error_type,
            }
        }
        super().__init__(status_code=status, detail=payload)

class BadRequest(APIError):
    status_code_default = 400
    error_type = "invalid_request_error"

class Unauthorized(APIError):
    status_code_default = 401
    error_type = "authentication_error"

class NotFound(APIError):
    status_code_default = 404
    error_type = "not_found_error"

class MethodNotAllowed(APIError):
    status_code_default = 405
    error_type = "method_not_allowed"

class UpstreamError(APIError):
    status_code_default = 500
    error_type = "upstream_error"

class InternalError(APIError):
    status_code_default = 500
    error_type = "internal_server_error"

def error_body(status_code: int, message: str) -> dict:
    """Error payload for a bare status code raised outside our own handlers."""
    error_cls = {
        400: BadRequest,
        401: Unauthorized,
        404: NotFound,
        405: MethodNotAllowed,
    }.get(status_code, InternalError)
    return error_cls(message, status_code=status_code).detail
