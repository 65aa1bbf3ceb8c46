from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Tuple


class Settings(BaseSettings):
    # LLM provider keys
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    gemini_api_key: str = ""

    # LLM model routing (provider:model, comma-separated)
    llm_stage_link_selection_models: str = "anthropic:claude-3-5-haiku-latest,openai:gpt-4.1-mini,gemini:gemini-2.0-flash"
    llm_stage_business_extraction_models: str = "anthropic:claude-3-7-sonnet-latest,openai:gpt-4.1,gemini:gemini-2.0-flash"
    llm_stage_url_inference_models: str = "anthropic:claude-3-5-haiku-latest,gemini:gemini-2.0-flash,openai:gpt-4.1-mini"

    # Retry policy
    stage_retry_max_attempts: int = 2
    stage_retry_backoff_seconds: float = 1.0
    llm_timeout_seconds: int = 120

    # Crawler runtime controls
    request_timeout_seconds: float = 30.0
    css_request_timeout_seconds: float = 10.0
    asset_request_timeout_seconds: float = 15.0
    courtesy_delay_seconds: float = 0.5
    llm_courtesy_delay_seconds: float = 1.1
    max_css_files: int = 10

    # Downloaded logos and favicons land here, one directory per company
    design_assets_dir: str = "public/assets"

    # App
    log_level: str = "INFO"

    @staticmethod
    def _parse_provider_models(value: str) -> List[Tuple[str, str]]:
        pairs: List[Tuple[str, str]] = []
        for raw in str(value or "").split(","):
            token = raw.strip()
            if not token or ":" not in token:
                continue
            provider, model = token.split(":", 1)
            provider = provider.strip().lower()
            model = model.strip()
            if provider and model:
                pairs.append((provider, model))
        return pairs

    def stage_model_routes(self, stage_name: str) -> List[Tuple[str, str]]:
        mapping = {
            "link_selection": self.llm_stage_link_selection_models,
            "business_extraction": self.llm_stage_business_extraction_models,
            "url_inference": self.llm_stage_url_inference_models,
        }
        return self._parse_provider_models(mapping.get(stage_name, self.llm_stage_business_extraction_models))

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
