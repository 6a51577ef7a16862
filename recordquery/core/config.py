from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "record-query"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8081"

    # Nested hops expanded by the accessor registry: 3 allows "a.b.c.field".
    FILTER_MAX_DEPTH: int = 3
    FILTER_DEFAULT_PAGE_SIZE: int = 30
    FILTER_WORKERS: int = 0  # 0 -> os.cpu_count()

    # Hybrid strategy: evaluate in memory when the estimated row count is at or below this.
    HYBRID_ROW_THRESHOLD: int = 10000

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
