"""
Server configuration loaded from environment variables.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _optional_float(value: str | None) -> float | None:
    return float(value) if value else None


class Config:
    """Server configuration."""
    
    # Server settings
    HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3001"))
    
    # Browser origin allowed to open a WebSocket
    CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:3000")
    
    # Database
    DB_NAME: str = os.getenv("DB_NAME", "nuverse")
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", f"./data/{DB_NAME}.db"))
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_POOL_TIMEOUT: float | None = _optional_float(os.getenv("DB_POOL_TIMEOUT"))  # None waits forever
    
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Config()
