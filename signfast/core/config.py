## signfast/core/config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the application
    """

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", case_sensitive=False
    )

    environment: str = "development"
    allowed_cors_urls: str = "http://localhost:3000"
    app_base_url: str = "http://localhost:3000"

    db_host: str = "localhost"
    db_user: str = "signfast"
    db_password: str = ""
    db_database: str = "signfast"
    db_port: int = 3306

    # Overrides the MySQL URL below when set (e.g. sqlite+aiosqlite for local runs)
    database_url: Optional[str] = None
    create_tables_on_startup: bool = True

    allowed_file_types: str = "pdf"
    allowed_file_size: int = 10240

    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    aws_ses_sender_email: Optional[str] = None
    s3_bucket_name: Optional[str] = None
    presigned_url_expiration: int = 3600

    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_metered_price_id: Optional[str] = None
    stripe_unlimited_price_id: Optional[str] = None
    stripe_meter_event_name: Optional[str] = None

    free_signatures_on_signup: int = 5
    max_signers_per_document: int = 10
    # Stays under the 10 MB SES raw message limit after base64
    max_email_attachment_kb: int = 7168

    log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[str] = None

    @property
    def async_db_url(self) -> str:
        """
        Async database URL
        """
        if self.database_url:
            return self.database_url
        return f"mysql+asyncmy://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_database}"

    @property
    def sign_url_base(self) -> str:
        """
        Base URL for signer-facing links
        """
        return f"{self.app_base_url.rstrip('/')}/sign"


settings = Settings()
