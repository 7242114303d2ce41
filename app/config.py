from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/db.sqlite3"
    api_key: str = ""  # empty = no auth check (local dev)
    data_dir: str = "./data"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:8000", "http://localhost:8081"]

    # Object storage
    storage_bucket: str = "profile-photos"
    public_base_url: str = "http://localhost:8000/storage"

    # Remote procedures
    functions_url: str = "http://localhost:54321/functions/v1"
    functions_anon_key: str = ""
    functions_timeout_seconds: float = 30.0

    # Moderation: "rpc" (moderate-photo function), "openai" or "disabled"
    moderation_backend: str = "rpc"
    openai_api_key: str = ""
    openai_moderation_model: str = "omni-moderation-latest"

    # Source image limits
    max_source_bytes: int = 20 * 1024 * 1024  # 20MB before optimization
    min_image_dimension: int = 200
    max_image_dimension: int = 12000
    allowed_image_formats: list[str] = ["JPEG", "PNG", "WEBP", "MPO"]

    # Optimizer targets
    profile_max_width: int = 1080
    profile_max_height: int = 1440
    profile_quality: float = 0.8
    thumbnail_max_width: int = 400
    thumbnail_max_height: int = 533
    thumbnail_quality: float = 0.7
    max_output_bytes: int = 3 * 1024 * 1024  # 3MB
    min_quality: float = 0.3

    min_photos: int = 2
    max_photos: int = 6

    # What to do when the remote duplicate lookup fails: "proceed" or "abort"
    duplicate_lookup_failure_policy: str = "proceed"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
