"""
Application configuration.
All settings are loaded from environment variables (or .env).
Defaults are suitable for local development; override credentials in production.
"""
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


CREDIT_MODES = ("check", "reserve")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: renderer API keys have no usable defaults - set them in .env.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated origins. Empty = default list in code.
    cors_origins: str = ""
    # Public base URL of this API; signed asset links are built on it.
    public_base_url: str = "http://localhost:8000"
    owner_id_header: str = "X-Owner-Id"

    # ===========================================
    # DATABASE
    # ===========================================
    database_url: str = "sqlite:///./enhancer.db"

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"
    celery_task_always_eager: bool = False

    # ===========================================
    # RENDERER - PROVIDER SELECTION
    # ===========================================
    render_provider: str = "shotstack"  # shotstack, creatomate

    # ===========================================
    # SHOTSTACK (Provider: shotstack)
    # ===========================================
    shotstack_api_key: str = ""
    shotstack_api_url: str = "https://api.shotstack.io/edit/stage"
    shotstack_timeout: float = 30.0

    # ===========================================
    # CREATOMATE (Provider: creatomate)
    # ===========================================
    creatomate_api_key: str = ""
    creatomate_api_url: str = "https://api.creatomate.com/v1"
    creatomate_template_id: str = "3fbdfb1d-958f-430c-b58c-4d4cf6588efd"
    creatomate_source_element: str = "Video-DHM"
    creatomate_timeout: float = 30.0

    # ===========================================
    # RENDER JOBS
    # ===========================================
    # Effective timeout = render_poll_interval_seconds * render_poll_max_attempts
    render_poll_interval_seconds: float = 5.0
    render_poll_max_attempts: int = 60
    render_cost_credits: int = 1
    render_expected_seconds: float = 120.0  # coarse progress estimate
    render_download_timeout: float = 120.0
    default_clip_length_seconds: int = 60
    max_clip_length_seconds: int = 180
    # Used when ffprobe is missing or cannot read the source.
    default_source_duration_seconds: float = 120.0
    ffprobe_binary: str = "ffprobe"
    default_transition: str = "fade"
    default_caption_text: str = "Enhanced Video"
    default_output_resolution: str = "1080x1920"
    output_format: str = "mp4"
    default_music_url: str = "https://shotstack-assets.s3.ap-southeast-2.amazonaws.com/music/freepd/motions.mp3"
    # Known-bad background track; replaced by default_music_url before submission.
    rejected_music_urls: str = "https://shotstack-assets.s3.ap-southeast-2.amazonaws.com/music/freepd/effects.mp3"
    # check = point-in-time balance check, debit on success.
    # reserve = hold at admission, capture on success, release on failure.
    credit_admission_mode: str = "check"

    # ===========================================
    # STORAGE
    # ===========================================
    storage_base_path: str = "./data/assets"
    signed_url_ttl_seconds: int = 900  # 15 minutes
    asset_url_secret: str = "change-me-asset-url-secret"
    max_upload_size_mb: int = 500
    allowed_video_extensions: str = ".mp4,.mov,.m4v,.webm"

    # ===========================================
    # WATCHDOG
    # ===========================================
    watchdog_queued_stale_minutes: int = 10
    watchdog_grace_minutes: int = 5

    # ===========================================
    # ALERTS
    # ===========================================
    alerts_list_limit: int = 10

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30
    cb_storage: str = "redis"  # redis, memory

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # ===========================================
    # IDEMPOTENCY
    # ===========================================
    idempotency_ttl: int = 300  # 5 minutes

    @field_validator("allowed_video_extensions")
    @classmethod
    def parse_extensions(cls, v: str) -> str:
        """Validate extensions format."""
        return v.lower().strip()

    @field_validator("credit_admission_mode")
    @classmethod
    def validate_credit_mode(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in CREDIT_MODES:
            raise ValueError(f"credit_admission_mode must be one of {CREDIT_MODES}")
        return value

    @model_validator(mode="after")
    def validate_poll_budget(self) -> "Settings":
        if self.render_poll_interval_seconds <= 0:
            raise ValueError("render_poll_interval_seconds must be positive")
        if self.render_poll_max_attempts < 1:
            raise ValueError("render_poll_max_attempts must be at least 1")
        return self

    @property
    def allowed_extensions_set(self) -> set[str]:
        """Get allowed extensions as a set."""
        return {ext.strip() for ext in self.allowed_video_extensions.split(",") if ext.strip()}

    @property
    def rejected_music_urls_set(self) -> set[str]:
        return {url.strip() for url in self.rejected_music_urls.split(",") if url.strip()}

    @property
    def render_timeout_seconds(self) -> float:
        """Wall-clock ceiling implied by the poll budget."""
        return self.render_poll_interval_seconds * self.render_poll_max_attempts


settings = Settings()
