"""FastAPI application entry point for SongStream"""

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from app.api.routes import router
from app.core.config import settings
from app.core.errors import StreamError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="SongStream",
    description="Authenticated range-request audio streaming",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["Authorization", "Range"],
    expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
)

app.include_router(router)


@app.exception_handler(StreamError)
async def stream_error_handler(request: Request, exc: StreamError):
    """Render domain failures as {"message": ...} with their status code"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message},
        headers=exc.headers(),
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": "SongStream",
        "version": "0.1.0",
        "description": "Authenticated range-request audio streaming",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}


@app.on_event("startup")
async def startup_event():
    """Application startup tasks"""
    logger.info("Starting SongStream...")
    logger.info(f"Upload directory: {settings.upload_dir}")
    logger.info(f"Catalog directory: {settings.data_dir}")

    settings.get_upload_path()
    settings.get_data_path()

    if not settings.session_secret:
        logger.warning("=" * 80)
        logger.warning("No SESSION_SECRET configured")
        logger.warning("Every stream request will be rejected with 401")
        logger.warning("To enable: Set SESSION_SECRET to the token signing secret")
        logger.warning("=" * 80)

    logger.info("SongStream started successfully")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True
    )
