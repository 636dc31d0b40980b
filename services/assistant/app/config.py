"""Configuration settings for the HVAC Assistant service"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Server
    port: int = 8010
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    # Redis (context snapshots)
    redis_url: str = "redis://redis:6379"
    persist_contexts: bool = False
    redis_key_prefix: str = "assistant:"

    # Intent classification
    confidence_threshold: float = 0.4
    ambiguity_margin: float = 0.05
    max_alternatives: int = 3
    unknown_floor: float = 0.1

    # Scoring weights
    keyword_weight: float = 0.5
    keyword_saturation: int = 2
    phrase_boost: float = 0.2
    entity_boost: float = 0.1
    disqualifier_penalty: float = 0.3

    # Clarification follow-ups
    pending_intent_bias: float = 0.5
    terse_token_limit: int = 3

    # Session management
    session_timeout: int = 1800  # 30 minutes
    max_turns: int = 20
    sweep_interval_seconds: int = 60

    # Composition
    data_source: str = "hvac_system"
    refresh_interval_seconds: int = 30
    cache_ttl_seconds: int = 300
    layout_gap: int = 24

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
