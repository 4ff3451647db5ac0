from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EXTRACTION_MODEL = "google/gemini-2.5-flash-lite"
DEFAULT_ARC_EVAL_MODEL = "grok-3-mini"


class Settings(BaseSettings):
    app_name: str = "chronicle"
    env: str = "dev"
    log_level: str = "INFO"

    llm_api_key: str = ""
    llm_base_url: str = "https://ai.gateway.lovable.dev/v1"
    llm_extraction_model: str = DEFAULT_EXTRACTION_MODEL
    llm_xai_api_key: str = ""
    llm_xai_base_url: str = "https://api.x.ai/v1"
    llm_arc_eval_model: str = DEFAULT_ARC_EVAL_MODEL

    extraction_timeout_s: float = 30.0
    extraction_max_attempts: int = 3
    extraction_temperature: float = 0.2
    arc_eval_timeout_s: float = 20.0
    arc_eval_temperature: float = 0.3
    arc_eval_max_tokens: int = 1024

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
