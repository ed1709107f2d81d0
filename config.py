import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        utc_offset_hours: int,
        token_secret: str,
        token_max_age_hours: int,
        bcrypt_rounds: int,
        default_currency: str,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.utc_offset_hours = utc_offset_hours
        self.token_secret = token_secret
        self.token_max_age_hours = token_max_age_hours
        self.bcrypt_rounds = bcrypt_rounds
        self.default_currency = default_currency
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FIANZAS_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "fianzas.db"
    database_url = os.getenv("FIANZAS_DATABASE_URL", f"sqlite:///{default_db}")
    utc_offset_hours = int(os.getenv("FIANZAS_UTC_OFFSET_HOURS", "-3"))
    token_secret = os.getenv(
        "FIANZAS_TOKEN_SECRET",
        "4c1e0f5d9a7b3e26f8d0c2a9b51e7d43a6f0e8c7b2d95a1f3e6c4b8d7a0f2e19",
    )
    token_max_age_hours = int(os.getenv("FIANZAS_TOKEN_MAX_AGE_HOURS", "168"))
    bcrypt_rounds = int(os.getenv("FIANZAS_BCRYPT_ROUNDS", "12"))
    default_currency = os.getenv("FIANZAS_DEFAULT_CURRENCY", "MXN")
    log_level = os.getenv("FIANZAS_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        utc_offset_hours=utc_offset_hours,
        token_secret=token_secret,
        token_max_age_hours=token_max_age_hours,
        bcrypt_rounds=bcrypt_rounds,
        default_currency=default_currency,
        log_level=log_level,
    )
