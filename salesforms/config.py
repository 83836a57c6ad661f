"""Application configuration"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Supabase
    supabase_url: str
    supabase_service_role_key: str
    supabase_anon_key: str
    forms_table: str = "forms"

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:5000",
        "http://127.0.0.1:5000",
        "https://salesrep-891v.onrender.com",
        "https://salesrep-backend.onrender.com",
    ]

    # Attachment uploads
    file_upload_path: str = "uploads"
    max_file_upload: int = 1000000  # bytes per file
    max_file_count: int = 5

    # Built frontend, served at / when enabled
    serve_frontend: bool = False
    frontend_dist: str = "client/dist"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
