"""
Configuration settings for the room staging pipeline
"""
from dataclasses import dataclass
from typing import List, Optional

from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class ProviderCredentials:
    """Snapshot of which providers are configured, taken once per process"""

    has_stability: bool
    has_gemini: bool
    has_openai: bool
    force_mock: bool = False
    allow_dev_mock: bool = False  # ALLOW_MOCK_FALLBACK and a development environment


class Settings(BaseSettings):
    """Pipeline settings"""

    # Application
    app_name: str = "Room Stage"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False

    # Stability AI (primary renderer)
    stability_api_key: str = ""
    stability_endpoint: str = "https://api.stability.ai/v2beta/stable-image/edit/inpaint"
    stability_strength: float = 0.8  # single-pass strength
    stability_guidance_scale: float = 7.5
    stability_mask_invert: bool = True  # white = editable

    # OpenAI Images Edits (fallback edit provider)
    openai_api_key: str = ""
    openai_edit_endpoint: str = "https://api.openai.com/v1/images/edits"
    openai_edit_size: str = "1024x1024"

    # Google Gemini (staging planner)
    gemini_api_key: str = ""
    gemini_text_model: str = "gemini-2.5-flash"
    gemini_image_model: Optional[str] = None

    # Mock switches
    force_mock_ai: bool = False
    allow_mock_fallback: bool = False

    # Generation pipeline
    enable_two_pass_generation: bool = True
    pass1_strength: float = 0.35  # global coherence pass
    pass2_strength: float = 0.75  # furniture inpaint pass
    render_timeout_seconds: float = 60.0
    planner_timeout_seconds: float = 30.0

    # Storage
    storage_backend: str = "local"  # local | vercel
    upload_path: str = "./data/public"
    storage_public_base_url: str = "http://localhost:3000"
    blob_read_write_token: str = ""
    blob_api_url: str = "https://blob.vercel-storage.com"

    # Image sources
    public_dir: str = "./public"
    local_image_prefixes: List[str] = ["/uploads/", "/images/"]
    image_fetch_timeout_seconds: float = 30.0

    # Debug artifacts (development only)
    save_debug_artifacts: bool = False
    debug_artifacts_dir: str = "/tmp"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def credentials(self) -> ProviderCredentials:
        """Provider availability as seen by the orchestrator"""
        return ProviderCredentials(
            has_stability=bool(self.stability_api_key),
            has_gemini=bool(self.gemini_api_key),
            has_openai=bool(self.openai_api_key),
            force_mock=self.force_mock_ai,
            allow_dev_mock=self.allow_mock_fallback and self.is_development,
        )
