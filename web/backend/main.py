import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skywave.domain.errors import DirectoryUnavailableError, RelayUpstreamError

from web.backend.errors import ApiError

app = FastAPI(title="Skywave API", version="0.1.0")

# CORS: Allow environment override for production
allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "")
allowed_origins = (
    [origin.strip() for origin in allowed_origins_env.split(",") if origin.strip()]
    if allowed_origins_env
    else ["*"]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(message: str) -> dict:
    return {"ok": False, "message": message}


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


@app.exception_handler(DirectoryUnavailableError)
async def directory_unavailable_handler(
    request: Request, exc: DirectoryUnavailableError
) -> JSONResponse:
    return JSONResponse(status_code=500, content=_error_body(str(exc)))


@app.exception_handler(RelayUpstreamError)
async def relay_upstream_handler(request: Request, exc: RelayUpstreamError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc)))


# Include routers
from web.backend.routers import stations, stream

app.include_router(stations.router, prefix="/api", tags=["stations"])
app.include_router(stream.router, prefix="/api", tags=["stream"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
