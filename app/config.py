"""Application configuration using pydantic-settings."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    gemini_api_key: str = ""

    # Server
    port: int = 8080
    host: str = "0.0.0.0"
    base_url: str = "http://localhost:8080"  # server-to-server calls
    public_base_url: str = "http://localhost:8080"  # client calls

    # Logging
    log_level: str = "INFO"

    # Rate Limiting
    rate_limit_per_hour: int = 100

    # CORS
    cors_origins: str = "*"  # Comma-separated origins or "*" for all

    # Gemini Settings
    gemini_text_model: str = "gemini-2.5-flash"
    gemini_image_model: str = "imagen-3.0-generate-002"
    gemini_tts_model: str = "gemini-2.5-flash-preview-tts"
    recipe_max_tokens: int = 1500
    validation_max_tokens: int = 800
    narration_max_tokens: int = 1500
    tagging_max_tokens: int = 1500
    chat_max_tokens: int = 1000

    # Storage
    storage_backend: str = "memory"  # "memory" or "firestore"
    recipes_collection: str = "recipes"
    ingredients_collection: str = "ingredients"
    ai_interactions_collection: str = "aiGenerated"

    # AI quota (gates wizard entry)
    ai_interaction_limit: int = 50
    ai_limit_window_hours: int = 24

    # Wizard
    max_ingredients: int = 10
    min_ingredients: int = 3
    ingredient_name_max_length: int = 20
    wizard_advance_delay: float = 0.5  # seconds, cosmetic
    wizard_session_ttl_minutes: int = 60  # idle sessions are evicted after this
    narration_audio_timeout: float = 20.0  # seconds

    # Listing
    page_size: int = 12
    popular_tags_limit: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Get list of CORS origins."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]


# Global settings instance
settings = Settings()
