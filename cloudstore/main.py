from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cloudstore.api.routes import folder_permissions
from cloudstore.core.exceptions import CloudStoreError, NotFoundError, StoreError, ValidationError

logger = logging.getLogger("cloudstore")

app = FastAPI(
    title="CloudStore Backend API",
    description="Folder permissions and access resolution for CloudStore.",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(folder_permissions.router)


def _error_response(message: str, status_code: int, details: str | None = None) -> JSONResponse:
    body: dict[str, object] = {"error": message, "statusCode": status_code}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    response = _error_response(str(exc.detail), exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"Invalid request: {location} {errors[0].get('msg', '')}".strip()
    else:
        message = "Invalid request"
    return _error_response(message, 400)


@app.exception_handler(CloudStoreError)
async def cloudstore_error_handler(request: Request, exc: CloudStoreError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        return _error_response(str(exc), 400)
    if isinstance(exc, NotFoundError):
        return _error_response(str(exc) or "Resource not found", 404)
    if isinstance(exc, StoreError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return _error_response("Storage operation failed", 500, str(exc))
    logger.error("Unhandled CloudStore error on %s %s: %s", request.method, request.url.path, exc)
    return _error_response("An error occurred", 500, str(exc))


@app.get("/")
async def root():
    return {"message": "CloudStore Backend API is running!"}
