from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Content Engine"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = False

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./content_engine.db"

    # Locking settings
    lock_default_minutes: int = 30
    lock_max_minutes: int = 480
    lock_cleanup_interval_minutes: int = 5

    # Tree settings
    max_tree_depth: int = 64

    # Translation settings
    default_language: str = "en"
    translatable_field_keywords: list[str] = [
        "text",
        "title",
        "description",
        "content",
        "body",
        "headline",
        "subtitle",
        "caption",
        "alt_text",
        "meta_title",
        "meta_description",
    ]
    metadata_sync_keys: list[str] = [
        "canonical_url",
        "robots",
        "structured_data",
        "og_image",
        "keywords",
    ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
