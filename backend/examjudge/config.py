"""Application configuration management"""

import json
import sys
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Exam Judge"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = ""
    DB_INIT_MODE: str = "create_all"  # create_all | off

    # Security (tokens are issued by the external auth service)
    SECRET_KEY: str = "dev-secret-key-change-in-production-use-openssl-rand-hex-32"
    ALGORITHM: str = "HS256"

    # Code Execution
    CODE_EXECUTION_TIMEOUT: float = 30.0
    COMPILE_TIMEOUT: float = 30.0
    TERMINATE_GRACE_SECONDS: float = 1.0
    EXECUTION_MAX_PROCESSES: int = 10
    MAX_CODE_SIZE: int = 51200
    MAX_OUTPUT_CHARS: int = 65536  # kept per stream in results
    MAX_OUTPUT_BYTES: int = 1048576  # per stream; beyond this the run is killed
    EXECUTION_MAX_USER_PROCESSES: int = 64  # RLIMIT_NPROC for children, 0 = unlimited
    TEMP_DIR: str = ""

    # Toolchain binaries
    PYTHON_COMMAND: str = Field(default_factory=lambda: sys.executable or "python3")
    NODE_COMMAND: str = "node"
    JAVAC_COMMAND: str = "javac"
    JAVA_COMMAND: str = "java"
    CPP_COMPILER: str = "g++"

    # Plagiarism detection
    PLAGIARISM_DEFAULT_THRESHOLD: int = 80
    PLAGIARISM_MAX_WORKERS: int = 0  # 0 = os.cpu_count()
    PLAGIARISM_PARALLEL_MIN_SUBMISSIONS: int = 40

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:3000","http://example.com"]
            CORS_ORIGINS=http://localhost:3000,http://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    def _resolve_path(self, value: str, default: str) -> str:
        """Resolve path - use absolute if empty or relative"""
        if not value or value.startswith(".."):
            return str(_BASE_DIR.parent / default)
        return value

    def get_temp_dir(self) -> str:
        return self._resolve_path(self.TEMP_DIR, "temp")

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "app.log")
        return p

    def get_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{_BASE_DIR.parent / 'examjudge.db'}"

    def validate_security_settings(self) -> None:
        """
        Validate runtime security defaults in production.

        Raises:
            ValueError: If insecure defaults are detected.
        """
        if self.ENVIRONMENT.lower() != "production":
            return

        insecure_secret_markers = {
            "",
            "dev-secret-key-change-in-production-use-openssl-rand-hex-32",
            "change-me",
        }
        if self.SECRET_KEY in insecure_secret_markers or len(self.SECRET_KEY) < 32:
            raise ValueError(
                "Insecure SECRET_KEY for production. Use the key shared with the auth service."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
