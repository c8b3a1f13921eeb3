from pydantic_settings import BaseSettings
from typing import List, Optional, Union
from pydantic import field_validator
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    PROJECT_NAME: str = "Account Center BFF"
    EXT_PREFIX: str = "/ext"

    # Logto Management API (machine-to-machine)
    LOGTO_ENDPOINT: str = ""
    LOGTO_M2M_APP_ID: str = ""
    LOGTO_M2M_APP_SECRET: str = ""
    LOGTO_MANAGEMENT_RESOURCE: str = "https://default.logto.app/api"

    # Account center SPA
    LOGTO_SPA_APP_ID: str = ""
    LOGTO_SPA_ENDPOINT: Optional[str] = None
    APP_URL: str = ""
    SPA_DIST_DIR: str = "dist/user"
    VERIFICATION_SOCIAL_REDIRECT_PATH: str = "/user/callback/social"

    # Security
    LOGTO_WEBHOOK_SECRET: Optional[str] = None
    API_KEY: Optional[str] = None

    # Server
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # CORS Settings - can be set as JSON string in .env
    BACKEND_CORS_ORIGINS: Union[List[str], str] = ["*"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[List[str], str]) -> List[str]:
        """Parse CORS origins from JSON string or list"""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If not valid JSON, split by comma
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("LOGTO_ENDPOINT", "APP_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def SPA_ENDPOINT(self) -> str:
        return (self.LOGTO_SPA_ENDPOINT or self.LOGTO_ENDPOINT).rstrip("/")

    @property
    def SOCIAL_REDIRECT_URI(self) -> str:
        return f"{self.APP_URL}{self.VERIFICATION_SOCIAL_REDIRECT_PATH}"

    def missing_required(self) -> List[str]:
        """Names of required variables that are unset or empty."""
        required = ["LOGTO_ENDPOINT", "LOGTO_M2M_APP_ID", "LOGTO_M2M_APP_SECRET", "LOGTO_SPA_APP_ID", "APP_URL"]
        return [name for name in required if not getattr(self, name)]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
