"""
Application settings
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Basics
    app_name: str = "Call Audit Pipeline API"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False, description="Debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./callaudit.db",
        description="Database connection URL"
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    database_pool_size: int = Field(default=10, description="Connection pool size")
    database_max_overflow: int = Field(default=20, description="Connection pool overflow")

    # Speech-to-text (AssemblyAI)
    assemblyai_api_key: Optional[str] = Field(default=None, description="AssemblyAI API key")
    assemblyai_base_url: str = Field(
        default="https://api.assemblyai.com/v2",
        description="AssemblyAI API base URL"
    )
    transcription_poll_interval: float = Field(default=3.0, description="Seconds between transcript polls")
    transcription_timeout: float = Field(default=600.0, description="Maximum seconds to wait for a transcript")
    transcription_request_timeout: float = Field(default=30.0, description="Per-request HTTP timeout")

    # Language model (OpenAI)
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_base_url: Optional[str] = Field(default=None, description="OpenAI API base URL")
    openai_model: str = Field(default="gpt-4o", description="Model used for call analysis")
    analysis_temperature: float = Field(default=0.7, description="Sampling temperature for analysis")
    analysis_timeout: float = Field(default=60.0, description="Request timeout for analysis calls")

    # A PROCESSING stage older than its timeout plus this margin may be claimed again
    stage_lease_margin: float = Field(default=60.0, description="Extra seconds before a PROCESSING stage is stale")

    # Proxy
    http_proxy: Optional[str] = Field(default=None, description="HTTP(S) proxy for upstream calls")

    # Object storage
    storage_backend: str = Field(default="local", description="local or s3")
    local_storage_dir: str = Field(default="storage", description="Local storage root")
    aws_access_key_id: Optional[str] = Field(default=None, description="AWS access key id")
    aws_secret_access_key: Optional[str] = Field(default=None, description="AWS secret access key")
    aws_s3_bucket_name: Optional[str] = Field(default=None, description="S3 bucket holding recordings")
    aws_region: str = Field(default="us-east-1", description="AWS region")
    signed_url_expires: int = Field(default=3600, description="Signed download URL lifetime (seconds)")

    # Report e-mail (SMTP)
    smtp_host: Optional[str] = Field(default=None, description="SMTP host")
    smtp_port: int = Field(default=587, description="SMTP port")
    smtp_username: Optional[str] = Field(default=None, description="SMTP username")
    smtp_password: Optional[str] = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="Use STARTTLS")
    smtp_from_email: str = Field(default="noreply@example.com", description="Sender address")

    # Security
    secret_key: str = Field(
        default="your-secret-key-change-this-in-production",
        description="JWT signing key"
    )
    algorithm: str = Field(default="HS256", description="JWT algorithm")
    access_token_expire_minutes: int = Field(default=30, description="Access token lifetime (minutes)")

    # CORS
    allowed_origins: list = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Allowed CORS origins"
    )

    # Logging
    log_dir: str = Field(default="logs", description="Log file directory")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
