"""
Configuration management for the Brand Ads Analytics service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Brand Ads Analytics"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./brand_analytics.db"

    # LLM Configuration
    anthropic_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    enable_llm_insights: bool = True
    llm_max_tokens: int = 1000
    llm_timeout_seconds: float = 25.0

    # Response cache
    metrics_cache_ttl_seconds: int = 60
    metrics_cache_max_entries: int = 80

    # Calendar-day boundaries ("server-local" or an IANA zone name)
    default_timezone: str = "server-local"

    # Meta action types counted as purchases (comma-separated)
    conversion_action_types: str = "purchase,offsite_conversion.fb_pixel_purchase,omni_purchase"

    # Recommendation thresholds
    target_roas: float = 3.0
    zero_conversion_spend_floor: float = 10.0
    roas_sanity_threshold: float = 20.0
    roas_sanity_min_spend: float = 100.0

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def conversion_actions(self) -> List[str]:
        return [a.strip() for a in self.conversion_action_types.split(",") if a.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
