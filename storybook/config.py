# storybook/config.py
import os
from dataclasses import dataclass
from typing import List

def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}

def _env_csv(name: str, default: str = "*") -> List[str]:
    raw = os.getenv(name, default)
    return [x.strip() for x in raw.split(",") if x.strip()]

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)

def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)

@dataclass(frozen=True)
class Config:
    # OpenAI
    openai_api_key: str
    openai_text_model: str
    openai_title_model: str
    openai_image_model: str
    image_size: str  # dall-e-3: 1024x1024, 1792x1024, 1024x1792
    # Google (photo-based stories)
    google_api_key: str
    gemini_text_model: str
    # Object storage
    gcs_bucket: str
    gcs_public_base_url: str
    # Story store
    redis_url: str
    story_ttl_seconds: int
    # Illustration retry policy
    image_timeout_seconds: float
    image_max_attempts: int
    image_backoff_seconds: float
    # Remote photos
    media_fetch_timeout_seconds: float
    # API / CORS
    allowed_origins: List[str]
    # Logging
    log_level: str
    debug: bool

    def missing_credentials(self, plot_mode: str = "describe") -> List[str]:
        """
        Names of the settings a story generation run cannot start without.
        The Google key is only needed when the plot is built from photos.
        """
        missing: List[str] = []
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if plot_mode == "photos" and not self.google_api_key:
            missing.append("GOOGLE_API_KEY")
        if not self.gcs_bucket:
            missing.append("GCS_BUCKET")
        if not self.redis_url:
            missing.append("REDIS_URL")
        return missing

def load_config() -> Config:
    return Config(
        openai_api_key = os.getenv("OPENAI_API_KEY", ""),
        openai_text_model = os.getenv("OPENAI_TEXT_MODEL", "gpt-4o"),
        openai_title_model = os.getenv("OPENAI_TITLE_MODEL", "gpt-4o"),
        openai_image_model = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3"),
        image_size = os.getenv("IMAGE_SIZE", "1024x1024"),
        google_api_key = os.getenv("GOOGLE_API_KEY", ""),
        gemini_text_model = os.getenv("GEMINI_TEXT_MODEL", "gemini-1.5-flash"),
        gcs_bucket = os.getenv("GCS_BUCKET", ""),
        gcs_public_base_url = os.getenv("GCS_PUBLIC_BASE_URL", "https://storage.googleapis.com").rstrip("/"),
        redis_url = os.getenv("REDIS_URL", ""),
        story_ttl_seconds = _env_int("STORY_TTL_SECONDS", 86400),
        image_timeout_seconds = _env_float("IMAGE_TIMEOUT_SECONDS", 30.0),
        image_max_attempts = _env_int("IMAGE_MAX_ATTEMPTS", 3),
        image_backoff_seconds = _env_float("IMAGE_BACKOFF_SECONDS", 2.0),
        media_fetch_timeout_seconds = _env_float("MEDIA_FETCH_TIMEOUT_SECONDS", 20.0),
        allowed_origins = _env_csv("ALLOWED_ORIGINS", "*"),
        log_level = os.getenv("LOG_LEVEL", "INFO"),
        debug = _env_bool("DEBUG", False),
    )

# Load once
config = load_config()
