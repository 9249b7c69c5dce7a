"""
Centralized configuration for the Alba conciergerie service.

All settings are loaded from environment variables via .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    # Brand
    app_name: str = Field(default="Alba", env="APP_NAME")
    app_base_url: str = Field(default="", env="APP_BASE_URL")

    # LLM provider selection
    llm_provider: str = Field(default="openai", env="LLM_PROVIDER")  # openai | bedrock
    max_tokens: int = Field(default=1000, env="MAX_TOKENS")
    temperature: float = Field(default=0.7, env="TEMPERATURE")
    llm_timeout_seconds: float = Field(default=30.0, env="LLM_TIMEOUT_SECONDS")

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    openai_llm_model: str = Field(default="gpt-4-turbo-preview", env="OPENAI_LLM_MODEL")

    # AWS / Bedrock
    aws_region: str = Field(default="us-east-1", env="AWS_REGION")
    bedrock_llm_model_id: str = Field(
        default="anthropic.claude-3-5-sonnet-20240620-v1:0", env="BEDROCK_LLM_MODEL_ID"
    )

    # Decision policy
    default_auto_send_threshold: float = Field(default=0.85, env="DEFAULT_AUTO_SEND_THRESHOLD")
    suggest_threshold: float = Field(default=0.5, env="SUGGEST_THRESHOLD")
    knowledge_base_limit: int = Field(default=10, env="KNOWLEDGE_BASE_LIMIT")

    # Mail relay (Gmail)
    gmail_api_base_url: str = Field(
        default="https://gmail.googleapis.com/gmail/v1", env="GMAIL_API_BASE_URL"
    )
    gmail_access_token: Optional[str] = Field(default=None, env="GMAIL_ACCESS_TOKEN")
    mail_timeout_seconds: float = Field(default=10.0, env="MAIL_TIMEOUT_SECONDS")
    # Optional SES fallback relay
    ses_from_email: Optional[str] = Field(default=None, env="SES_FROM_EMAIL")

    # Database
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # API
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=8000, env="API_PORT")
    api_title: str = Field(default="Alba Conciergerie API", env="API_TITLE")
    api_version: str = Field(default="1.0.0", env="API_VERSION")
    api_key: Optional[str] = Field(default=None, env="API_KEY")
    cors_origins: str = Field(default="*", env="CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    debug: bool = Field(default=False, env="DEBUG")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def is_bedrock(self) -> bool:
        return self.llm_provider.lower() == "bedrock"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
