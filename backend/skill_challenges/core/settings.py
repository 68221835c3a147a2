# backend/skill_challenges/core/settings.py

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === App settings ===
    app_name: str = "Skill Challenges"
    environment: str = "development"  # or "production"
    api_version: str = "1.0.0"

    # === MongoDB ===
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "skill_challenges"

    # === Redis (cache + queues) ===
    redis_url: str = "redis://localhost:6379/0"
    completion_queue_name: str = "challenge-completion"
    stats_queue_name: str = "challenge-statistics"

    # === CACHE ===
    cache_enabled: bool = True
    cache_prefix: str = "challenges"
    cache_ttl_seconds: int = 24 * 60 * 60  # 1 day

    # === STATISTICS ===
    stats_cron_hour: int = 0
    stats_cron_minute: int = 0
    stats_timezone: str = "UTC"
    # False: règle historique (period_start <= start ET period_end <= end)
    stats_snapshot_strict_match: bool = False

    # === LOGS ===
    log_dir: str = "logs"
    log_retention_days: int = 30

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Retourne l’instance de settings (chargée une seule fois)."""
    return Settings()
