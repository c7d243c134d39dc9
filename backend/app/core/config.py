"""Application configuration using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from typing import List
from dotenv import load_dotenv

# Explicitly load .env file
# Try loading from current directory or parent directory to handle different runtime contexts
env_path = Path(".env")
if not env_path.exists():
    env_path = Path("backend/.env")
if not env_path.exists():
    env_path = Path("../.env")

if env_path.exists():
    load_dotenv(dotenv_path=env_path)
else:
    # Fallback: defaults to .env in cwd
    load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Storage
    upload_dir: str = "./uploads"
    data_dir: str = "data"
    max_upload_size: int = 10 * 1024 * 1024  # 10MB, same cap as the upload form

    # Streaming
    stream_chunk_size: int = 64 * 1024

    # Auth: HS256 secret shared with the service that issues session tokens
    session_secret: str = ""
    token_ttl_days: int = 7

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def get_upload_path(self) -> Path:
        """Get upload directory as Path object, create if doesn't exist"""
        path = Path(self.upload_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_data_path(self) -> Path:
        """Get catalog data directory, create if doesn't exist"""
        path = Path(self.data_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Singleton instance
settings = Settings()
