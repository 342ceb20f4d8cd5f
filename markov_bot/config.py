"""
Markov Chat Service Configuration
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # ===== Service =====
    SERVICE_NAME: str = Field(default="markov-chat-service", env="SERVICE_NAME")  # type: ignore
    SERVICE_VERSION: str = Field(default="1.0.0", env="SERVICE_VERSION")  # type: ignore
    HOST: str = Field(default="0.0.0.0", env="HOST")  # type: ignore
    PORT: int = Field(default=8000, env="PORT")  # type: ignore
    LOG_LEVEL: str = Field(default="info", env="LOG_LEVEL")  # type: ignore
    DEBUG: bool = Field(default=False, env="DEBUG")  # type: ignore

    # ===== CORS =====
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"], env="CORS_ORIGINS"  # type: ignore
    )

    # ===== MongoDB =====
    MONGODB_URI: str = Field(default="mongodb://localhost:27017", env="MONGODB_URI")  # type: ignore
    MONGODB_DB: str = Field(default="markov", env="MONGODB_DB")  # type: ignore
    MONGODB_APP_NAME: str = Field(default="markov-chat-service", env="MONGODB_APP_NAME")  # type: ignore
    MONGODB_CONNECT_TIMEOUT_MS: int = Field(default=3000, env="MONGODB_CONNECT_TIMEOUT_MS")  # type: ignore
    CHATS_COLLECTION: str = Field(default="chats", env="CHATS_COLLECTION")  # type: ignore
    USER_INFOS_COLLECTION: str = Field(default="user_infos", env="USER_INFOS_COLLECTION")  # type: ignore

    # ===== Markov =====
    # Owner key of the aggregate chain built from every user in a chat
    ALL_USERS_KEY: str = Field(default="all", env="ALL_USERS_KEY")  # type: ignore
    # Cap on contexts expanded per /msg; None disables the cap
    GENERATION_MAX_STEPS: Optional[int] = Field(default=100_000, env="GENERATION_MAX_STEPS")  # type: ignore
    # Read-modify-write attempts before a concurrent write is reported
    CHAT_WRITE_RETRIES: int = Field(default=3, env="CHAT_WRITE_RETRIES")  # type: ignore

    # >>> pydantic v2 settings config <<<
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
