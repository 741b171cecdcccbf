from functools import lru_cache
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_SERIES_IDS = [
    "CPIAUCSL",  # Consumer Price Index
    "UNRATE",    # Unemployment Rate
    "GDP",       # Gross Domestic Product
    "DGS10",     # 10-Year Treasury Constant Maturity Rate
    "DGS2",      # 2-Year Treasury Constant Maturity Rate
    "FEDFUNDS",  # Federal Funds Effective Rate
    "UMCSENT",   # University of Michigan: Consumer Sentiment
    "HOUST",     # Housing Starts
    "RSAFS",     # Retail Sales
    "CP",        # Corporate Profits
    "M2SL",      # M2 Money Stock
]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    environment: str = Field(default="development", alias="NODE_ENV")

    # Model provider (Responses API)
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    llm_model: str = Field(default="gpt-4o-mini", alias="LLM_MODEL")
    llm_temperature: float = Field(default=0.7, alias="LLM_TEMPERATURE")
    llm_timeout: int = Field(default=60, alias="LLM_TIMEOUT")
    assistant_system_prompt: str | None = Field(
        default=None,
        alias="ASSISTANT_SYSTEM_PROMPT",
        description="Overrides the default assistant persona",
    )

    # FRED
    fred_api_key: str | None = Field(default=None, alias="FRED_API_KEY")
    fred_base_url: str = Field(default="https://api.stlouisfed.org/fred", alias="FRED_BASE_URL")
    fred_observation_limit: int = Field(default=100, alias="FRED_OBSERVATION_LIMIT")
    fred_default_series: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_SERIES_IDS),
        alias="FRED_DEFAULT_SERIES",
    )

    # Context cache
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    context_cache_ttl: int = Field(
        default=86400,
        alias="CONTEXT_CACHE_TTL",
        description="Freshness window for cached series, also used as the store TTL",
    )
    context_cache_prefix: str = Field(default="fred:series:", alias="CONTEXT_CACHE_PREFIX")
    context_refresh_interval_hours: float = Field(default=24, alias="CONTEXT_REFRESH_INTERVAL_HOURS")

    disable_background_jobs: bool = Field(default=False, alias="DISABLE_BACKGROUND_JOBS")
    allowed_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: [], alias="ALLOWED_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,  # Treat empty strings as not set
        populate_by_name=True,
    )

    @field_validator("allowed_origins", "fred_default_series", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse comma-separated strings into lists"""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v or []

    @property
    def llm_enabled(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
