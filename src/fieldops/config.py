"""Runtime settings, read from the environment and `.env`."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_anon_key: str = ""
    store_backend: str = "sql"  # "supabase" or "sql"
    database_url: str = "sqlite:///./fieldops.db"
    atividades_table: str = "atividades"
    profiles_table: str = "profiles"
    pending_users_table: str = "pending_users"
    fetch_page_size: int = 1000
    sync_batch_size: int = 100
    # Sync is blocked this long after a load finishes
    load_cooldown_seconds: float = 2.0
    # Upload arriving while the guard is armed waits this long before syncing
    merge_delay_seconds: float = 2.5
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
