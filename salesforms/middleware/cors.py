"""CORS middleware configuration"""
from fastapi.middleware.cors import CORSMiddleware
from salesforms.config import get_settings


def setup_cors(app):
    """
    Configure CORS middleware for the application

    Args:
        app: FastAPI application instance
    """
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
