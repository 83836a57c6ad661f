"""Main FastAPI application"""
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from datetime import datetime, timezone
from salesforms.config import get_settings
from salesforms.middleware.cors import setup_cors
from salesforms.middleware.error_handler import setup_error_handlers
from salesforms.middleware.request_logger import RequestLoggingMiddleware
from salesforms.routers import forms
import logging
import os

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


app = FastAPI(
    title="Sales Forms API",
    description="Submit, search and manage sales forms with image attachments",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Error responders first so CORS and request logging wrap them
setup_error_handlers(app)
app.add_middleware(RequestLoggingMiddleware)
setup_cors(app)


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "success": True,
        "message": "API is running",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


app.include_router(forms.router, prefix="/api/forms", tags=["Forms"])

# Stored attachments are served at the url derived for each of them
os.makedirs(settings.file_upload_path, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.file_upload_path), name="uploads")

if settings.serve_frontend:
    if os.path.isdir(settings.frontend_dist):
        app.mount("/", StaticFiles(directory=settings.frontend_dist, html=True), name="frontend")
        logger.info(f"Serving frontend from {settings.frontend_dist}")
    else:
        logger.warning(f"Frontend directory {settings.frontend_dist} not found, not serving frontend")

logger.info(f"Sales Forms API configured for {settings.environment}")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
