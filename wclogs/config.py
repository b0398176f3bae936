from functools import lru_cache

from pydantic import BaseModel, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WCLConfig(BaseModel):
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    api_url: str = "https://www.warcraftlogs.com/api/v2/client"
    oauth_url: str = "https://www.warcraftlogs.com/oauth/token"
    timeout: float = 30.0


class AnalysisConfig(BaseModel):
    interrupt_window_ms: float = 300.0
    death_window_before_ms: float = 5000.0
    death_window_after_ms: float = 1000.0
    death_event_limit: int = 100
    lookup_concurrency: int = 8  # parallel single-ability lookups
    max_event_pages: int = 100


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    api_key: str = ""  # empty = auth disabled
    wcl: WCLConfig = WCLConfig()
    analysis: AnalysisConfig = AnalysisConfig()

    @model_validator(mode="after")
    def _check_cross_field_deps(self):
        if self.analysis.interrupt_window_ms < 0:
            raise ValueError("ANALYSIS__INTERRUPT_WINDOW_MS must be >= 0")
        if self.analysis.lookup_concurrency < 1:
            raise ValueError("ANALYSIS__LOOKUP_CONCURRENCY must be >= 1")
        if self.analysis.death_event_limit < 1:
            raise ValueError("ANALYSIS__DEATH_EVENT_LIMIT must be >= 1")
        return self

    @property
    def has_credentials(self) -> bool:
        return bool(
            self.wcl.client_id and self.wcl.client_secret.get_secret_value()
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
