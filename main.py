import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from college_library.config import settings
from college_library.database import init_db
from college_library.exceptions import LibraryError, error_response
from college_library.logging_config import generate_request_id, get_request_id, logger, set_request_id
from college_library.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Library service started", extra={"environment": settings.ENVIRONMENT})
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or generate_request_id()
    set_request_id(request_id)

    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000

    response.headers["X-Request-ID"] = request_id
    if request.url.path != "/health":
        logger.info(
            f"HTTP {request.method} {request.url.path} - {response.status_code} ({duration_ms:.2f}ms)",
            extra={"http_method": request.method, "http_status": response.status_code, "duration_ms": duration_ms},
        )
    return response


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error: {exc.orig}")
    error = LibraryError("Record conflicts with existing data", code="CONFLICT")
    return JSONResponse(status_code=409, content=error_response(error))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    error = LibraryError(str(exc) if settings.DEBUG else "An internal error occurred")
    # runs outside the logging middleware, so the header is set here
    request_id = get_request_id() or request.headers.get("X-Request-ID") or generate_request_id()
    return JSONResponse(status_code=500, content=error_response(error), headers={"X-Request-ID": request_id})


app.include_router(router, prefix=settings.API_PREFIX)


@app.get("/health", tags=["Health"])
def health_check():
    return {"status": "healthy", "service": settings.APP_NAME}
