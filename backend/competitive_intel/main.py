import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routers.intel import router as intel_router
from .services.http_client import close_client


# Load environment variables from .env file
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    # Startup
    logger.info("Starting Competitive Intelligence Engine")
    logger.info("   OpenAI Key:  %s", "Configured" if os.getenv("OPENAI_API_KEY") else "Not set (synthesis unavailable)")
    logger.info("   Tavily Key:  %s", "Configured" if os.getenv("TAVILY_API_KEY") else "Not set (web search unavailable)")
    logger.info("   Birdeye Key: %s", "Configured" if os.getenv("BIRDEYE_API_KEY") else "Not set (token data unavailable)")

    yield

    logger.info("Shutting down Competitive Intelligence Engine")
    await close_client()


app = FastAPI(
    title="Evidence-Grounded Competitive Intelligence Engine",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",      # Next.js dev server
        "http://127.0.0.1:3000",      # Alternative localhost
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(intel_router)


@app.get(
    "/",
    summary="API Root",
    description="Welcome endpoint with API information",
    tags=["General"]
)
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Competitive Intelligence Engine",
        "version": "0.1.0",
        "description": "Evidence-grounded competitive memos for product ideas",
        "docs": "/docs",
        "endpoints": {
            "competitive_intel": "POST /competitive-intel - Generate a competitive memo",
            "health": "GET /competitive-intel/health - Service health check"
        }
    }


@app.get(
    "/health",
    summary="Global Health Check",
    description="Check if the API server is running",
    tags=["General"]
)
async def health():
    """Global health check endpoint."""
    return {
        "status": "healthy",
        "service": "competitive-intel-engine",
        "version": "0.1.0"
    }


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "detail": str(exc) if os.getenv("DEBUG", "false").lower() == "true" else "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "competitive_intel.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("DEBUG", "true").lower() == "true",
    )
