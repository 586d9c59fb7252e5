import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.core.config import settings
from backend.api.endpoints import router as api_router
from backend.schemas import schemas
from breedlab.errors import NumericalError, StructuralInputError

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Breeding Theory Lab Engine",
    description="Relationship matrices, BLUP, genomic relationships and breeding simulation.",
    version="0.1.0"
)

# Set up CORS
if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _error_response(status_code: int, code: str, exc: Exception) -> JSONResponse:
    body = schemas.ErrorResponse(error=schemas.ErrorDetail(code=code, message=str(exc)))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(StructuralInputError)
async def structural_error_handler(request: Request, exc: StructuralInputError):
    logger.info(f"Rejected {request.url.path}: {exc}")
    return _error_response(422, type(exc).__name__, exc)


@app.exception_handler(NumericalError)
async def numerical_error_handler(request: Request, exc: NumericalError):
    logger.info(f"Numerical failure on {request.url.path}: {exc}")
    return _error_response(400, "NumericalError", exc)


# Include the API router
app.include_router(api_router, prefix="/api")

@app.get("/")
async def root():
    return {"message": "Welcome to the Breeding Theory Lab API"}
