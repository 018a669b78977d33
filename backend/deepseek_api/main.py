from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from deepseek_api.core.config import get_settings
from deepseek_api.core.errors import BadRequest, InternalError, Unauthorized, error_body
from deepseek_api.core.security import verify_api_key
from deepseek_api.routes import chat
from deepseek_api.routes.chat import COMPLETION_PATHS
from deepseek_api.core.logging import setup_logger
from deepseek_api.services.upstream import lifespan

settings = get_settings()
logger = setup_logger(settings.LOG_LEVEL)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}
PREFLIGHT_HEADERS = {**CORS_HEADERS, "Access-Control-Max-Age": "86400"}

# Only the exact chat completion paths are served, a trailing slash is a 404
app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None, redirect_slashes=False)

async def authenticate(request: Request):
    """Bearer check for completion requests, done before the body is parsed."""
    if request.method != "POST" or request.url.path not in COMPLETION_PATHS:
        return None
    # honour test overrides of the settings dependency
    current_settings = request.app.dependency_overrides.get(get_settings, get_settings)()
    try:
        verify_api_key(request.headers.get("Authorization"), current_settings)
    except Unauthorized as e:
        return JSONResponse(e.detail, status_code=e.status_code)
    return None

@app.middleware("http")
async def cors_headers(request: Request, call_next):
    # Answers every OPTIONS request, with or without an Origin header
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=PREFLIGHT_HEADERS)
    try:
        response = await authenticate(request) or await call_next(request)
    except Exception as e:
        logger.error(f"Unhandled error for {request.method} {request.url.path}: {str(e)}")
        response = JSONResponse(InternalError(str(e) or "Internal server error").detail, status_code=500)
    response.headers.update(CORS_HEADERS)
    return response

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = error_body(exc.status_code, str(exc.detail))
    return JSONResponse(content, status_code=exc.status_code, headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        invalid_json = first.get("type") == "json_invalid"
        # the location of a decode error is a character offset, not a field
        location = "" if invalid_json else ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        code = "invalid_json" if invalid_json else "invalid_request"
    else:
        message, code = "Invalid request body", "invalid_request"
    logger.warning(f"Rejected request to {request.url.path}: {message}")
    return JSONResponse(BadRequest(message, code=code).detail, status_code=400)

app.include_router(chat.router, include_in_schema=False)
app.include_router(chat.router, prefix="/v1")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("deepseek_api.main:app", host="0.0.0.0", port=8000)
