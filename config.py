import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        import_batch_size: int,
        digest_hour: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.import_batch_size = import_batch_size
        self.digest_hour = digest_hour


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "Europe/Brussels")
    import_batch_size = max(1, int(os.getenv("FINANCE_IMPORT_BATCH_SIZE", "50")))
    digest_hour = int(os.getenv("FINANCE_DIGEST_HOUR", "7"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        import_batch_size=import_batch_size,
        digest_hour=digest_hour,
    )
