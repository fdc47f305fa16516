"""
Utilidades de fecha y hora en la zona horaria de la hoja.

Todas las marcas de tiempo que se escriben en la hoja usan el formato
LogConfig.DATETIME_FORMAT en la zona horaria configurada (por defecto
America/Guayaquil).

Autor: Sistema de Tracking LAAR
Fecha: Octubre 2025
"""

from __future__ import annotations
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from .constants import LogConfig

DEFAULT_TIMEZONE = "America/Guayaquil"


def now_local(tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Retorna la fecha y hora actual (aware) en la zona indicada."""
    return datetime.now(ZoneInfo(tz_name))


def format_datetime(value: datetime, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """
    Formatea una fecha como texto de hoja en la zona indicada.

    Las fechas naive se interpretan como ya expresadas en esa zona.
    """
    zone = ZoneInfo(tz_name)
    if value.tzinfo is None:
        value = value.replace(tzinfo=zone)
    return value.astimezone(zone).strftime(LogConfig.DATETIME_FORMAT)


def parse_datetime(text: str, tz_name: str = DEFAULT_TIMEZONE) -> Optional[datetime]:
    """
    Interpreta una marca de tiempo escrita en la hoja.

    Acepta LogConfig.DATETIME_FORMAT y cualquier forma ISO 8601. Los valores
    sin zona se asumen en tz_name. Retorna None si el texto no es una fecha.
    """
    if not text:
        return None
    raw = str(text).strip()
    zone = ZoneInfo(tz_name)
    try:
        parsed = datetime.strptime(raw, LogConfig.DATETIME_FORMAT)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed
