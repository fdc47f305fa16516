from __future__ import annotations
from dataclasses import dataclass
import os
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .utils.constants import BatchConfig, LogConfig, TrackingConfig
from .utils.time_utils import DEFAULT_TIMEZONE

# Load environment variables from .env if present
load_dotenv()


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "si", "sí"}


def _as_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return int(str(raw).strip())
    except ValueError as e:
        raise ConfigurationError(f"{key} debe ser un entero, se recibió {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, built once at startup and passed around.

    Secrets (service account JSON) are referenced here but never logged.
    """

    spreadsheet_id: str
    tab_name: str = "Tracking"
    credentials_base64: str = ""
    credentials_file: str = ""
    scraping_delay_ms: int = BatchConfig.DEFAULT_SCRAPING_DELAY_MS
    max_parcels_per_batch: int = BatchConfig.DEFAULT_MAX_PER_BATCH
    headless: bool = True
    timezone: str = DEFAULT_TIMEZONE
    tracking_url_template: str = TrackingConfig.DEFAULT_URL_TEMPLATE
    scraper_engine: str = "playwright"
    navigation_timeout_ms: int = BatchConfig.DEFAULT_TIMEOUT_MS
    cron_secret: str = ""
    lock_path: str = os.path.join(LogConfig.LOGS_DIR, "reconciliation.lock.json")
    lock_lease_seconds: int = BatchConfig.DEFAULT_LOCK_LEASE_SECONDS
    log_level: str = "INFO"

    REQUIRED_KEYS = ("GOOGLE_SHEETS_SPREADSHEET_ID",)
    CREDENTIAL_KEYS = ("GOOGLE_CREDENTIALS_BASE64", "GOOGLE_CREDENTIALS_FILE")
    ENGINES = ("playwright", "simple")

    @property
    def scraping_delay_seconds(self) -> float:
        return self.scraping_delay_ms / 1000.0

    @classmethod
    def load(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ConfigurationError: listing every missing required variable, or
                naming the first malformed one.
        """
        env = os.environ if env is None else env

        missing = [key for key in cls.REQUIRED_KEYS if not env.get(key)]
        if not any(env.get(key) for key in cls.CREDENTIAL_KEYS):
            missing.append(" o ".join(cls.CREDENTIAL_KEYS))
        if missing:
            raise ConfigurationError(
                "Faltan variables de entorno requeridas: "
                + ", ".join(missing)
                + ". Copia .env.example a .env y configúralas."
            )

        engine = env.get("SCRAPER_ENGINE", "playwright").strip().lower()
        if engine not in cls.ENGINES:
            raise ConfigurationError(
                f"SCRAPER_ENGINE debe ser uno de {cls.ENGINES}, se recibió {engine!r}"
            )

        template = env.get("TRACKING_URL_TEMPLATE") or TrackingConfig.DEFAULT_URL_TEMPLATE
        if "{guia}" not in template:
            raise ConfigurationError("TRACKING_URL_TEMPLATE debe contener '{guia}'")

        delay_ms = _as_int(env, "SCRAPING_DELAY_MS", BatchConfig.DEFAULT_SCRAPING_DELAY_MS)
        max_batch = _as_int(env, "MAX_GUIAS_PER_BATCH", BatchConfig.DEFAULT_MAX_PER_BATCH)
        if delay_ms < 0:
            raise ConfigurationError("SCRAPING_DELAY_MS debe ser >= 0")
        if max_batch < 1:
            raise ConfigurationError("MAX_GUIAS_PER_BATCH debe ser >= 1")

        return cls(
            spreadsheet_id=env["GOOGLE_SHEETS_SPREADSHEET_ID"],
            tab_name=env.get("GOOGLE_SHEETS_TAB_NAME") or "Tracking",
            credentials_base64=env.get("GOOGLE_CREDENTIALS_BASE64", ""),
            credentials_file=env.get("GOOGLE_CREDENTIALS_FILE", ""),
            scraping_delay_ms=delay_ms,
            max_parcels_per_batch=max_batch,
            headless=_as_bool(env.get("HEADLESS"), True),
            timezone=env.get("TZ_NAME") or DEFAULT_TIMEZONE,
            tracking_url_template=template,
            scraper_engine=engine,
            navigation_timeout_ms=_as_int(env, "NAVIGATION_TIMEOUT_MS", BatchConfig.DEFAULT_TIMEOUT_MS),
            cron_secret=env.get("CRON_SECRET", ""),
            lock_path=env.get("LOCK_PATH") or os.path.join(LogConfig.LOGS_DIR, "reconciliation.lock.json"),
            lock_lease_seconds=_as_int(env, "LOCK_LEASE_SECONDS", BatchConfig.DEFAULT_LOCK_LEASE_SECONDS),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
