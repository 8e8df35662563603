"""Environment-based configuration for the fill estimator service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Fill estimator settings, loaded from environment variables or .env."""

    # Server
    PORT: int = 3000

    # OpenAI-compatible vision model (empty key = analysis disabled per request)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Vision call timeouts and retry
    VISION_TIMEOUT_SECONDS: int = 60
    VISION_CONNECT_TIMEOUT: int = 10
    VISION_RETRY_ATTEMPTS: int = 3
    VISION_RETRY_DELAY: float = 1.0
    VISION_RETRY_BACKOFF: float = 2.0

    # Image preparation before upload to the model
    IMAGE_PREPROCESS: bool = True
    IMAGE_MAX_DIMENSION: int = 1536
    IMAGE_JPEG_QUALITY: int = 90

    model_config = {
        "env_prefix": "",
        "case_sensitive": True,
        "env_file": ".env",
        "extra": "ignore",
    }


settings = Settings()
