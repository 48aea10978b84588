from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Redis (empty = caching disabled)
    redis_url: str = ""

    # JPL Horizons
    horizons_url: str = "https://ssd.jpl.nasa.gov/api/horizons.api"
    horizons_timeout_s: float = 15.0
    horizons_min_interval_s: float = 1.0

    # Retry policy for live fetches
    retry_max_attempts: int = 3
    retry_backoff_s: float = 1.0

    # Cache TTLs by orbital speed tier (seconds)
    ttl_fast_s: int = 3_600
    ttl_default_s: int = 21_600
    ttl_slow_s: int = 86_400

    # Orbit path sampling
    orbit_segments: int = 128

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
