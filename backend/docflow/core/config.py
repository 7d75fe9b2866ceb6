"""
Pydantic Settings: centralized configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ──────────────────────────────
    POSTGRES_USER: str = "docflow_user"
    POSTGRES_PASSWORD: str = "docflow_pass"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "docflow_db"

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for app runtime (asyncpg)."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ── Redis / Celery ────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # ── Blob Storage (extracted-data payloads) ──
    STORAGE_ENDPOINT: str = "http://localhost:9000"
    STORAGE_BUCKET_NAME: str = "extracted-data"
    STORAGE_ACCESS_TOKEN: str = ""

    # ── Step execution ────────────────────────
    # None disables the client timeout: steps block as long as the remote call takes.
    HTTP_TIMEOUT_SECONDS: float | None = None
    MAX_STEP_EXECUTIONS: int = 500

    # ── SFTP default remote folders ───────────
    SFTP_DEFAULT_PDF_PATH: str = "/ParseIt_PDF"
    SFTP_DEFAULT_JSON_PATH: str = "/ParseIt_JSON"
    SFTP_DEFAULT_XML_PATH: str = "/ParseIt_XML"
    SFTP_DEFAULT_CSV_PATH: str = "/ParseIt_CSV"
    SFTP_CONNECT_TIMEOUT_SECONDS: float = 30.0

    # ── Email providers ───────────────────────
    OFFICE365_TOKEN_URL: str = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
    GRAPH_API_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    GMAIL_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GMAIL_SEND_URL: str = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"

    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"  # console | json

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}


settings = Settings()
