"""
Constantes del sistema de tracking LAAR.

Este módulo centraliza las constantes utilizadas en la aplicación,
incluyendo el orden de columnas de la hoja, configuraciones de batch,
estados conocidos y mensajes de resultado. Esto evita la duplicación de
valores mágicos y facilita el mantenimiento.

Autor: Sistema de Tracking LAAR
Fecha: Octubre 2025
"""

from __future__ import annotations
from typing import List, Tuple


class ColumnHeaders:
    """
    Definición de columnas de la hoja de tracking.

    El orden de ORDER es el orden físico de las columnas A:J en la hoja;
    lectura y escritura dependen de él.
    """

    ID = "ID"
    GUIA = "GUIA"
    FECHA_CARGA = "FECHA CARGA"
    ESTADO = "ESTADO"
    CIUDAD_ORIGEN = "CIUDAD ORIGEN"
    CIUDAD_DESTINO = "CIUDAD DESTINO"
    ENTREGADO_A = "ENTREGADO A"
    FECHA_ENTREGA = "FECHA ENTREGA"
    ULTIMA_ACTUALIZACION = "ULTIMA ACTUALIZACION"
    HISTORIAL = "HISTORIAL"

    ORDER: List[str] = [
        ID,
        GUIA,
        FECHA_CARGA,
        ESTADO,
        CIUDAD_ORIGEN,
        CIUDAD_DESTINO,
        ENTREGADO_A,
        FECHA_ENTREGA,
        ULTIMA_ACTUALIZACION,
        HISTORIAL,
    ]

    # Rango de datos (sin la fila de headers) y última columna
    FIRST_DATA_ROW = 2
    LAST_COLUMN = "J"


class BatchConfig:
    """
    Configuraciones por defecto para scraping y operaciones batch.

    Los valores efectivos se leen en Settings; estos son los defaults.
    """

    DEFAULT_SCRAPING_DELAY_MS = 2000     # Pausa entre consultas al sitio LAAR
    DEFAULT_MAX_PER_BATCH = 50           # Máximo de guías por carga manual
    DEFAULT_TIMEOUT_MS = 30000           # Timeout de navegación
    DEFAULT_LOCK_LEASE_SECONDS = 900     # Vigencia del lock del job
    RECENT_WINDOW_HOURS = 24             # Ventana de "recién entregadas"


class StatusValues:
    """
    Valores estándar de estado usados por el sistema.

    El estado de una guía es texto libre del sitio LAAR; aquí solo se
    definen los valores que el sistema escribe o interpreta.
    """

    DESCONOCIDO = "Desconocido"
    NO_DISPONIBLE = "No disponible"

    # Fragmentos que marcan un estado final (comparación en minúsculas)
    FINAL_STATE_MARKERS: Tuple[str, ...] = (
        "entregado",
        "devolución/entrega",
        "devolucion/entrega",
        "siniestro/entrega",
    )

    HISTORY_MAX_ENTRIES = 3


class ResultMessages:
    """Razones y mensajes devueltos en los resultados estructurados."""

    ADDED = "added"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"

    ALREADY_EXISTS = "already exists"
    NOT_FOUND = "not found"
    FINAL_STATE = "final state"
    ALREADY_RUNNING = "already running"

    ADD_OK = "record added"
    UPDATE_OK = "record updated"


class TrackingConfig:
    """Constantes del sitio de rastreo de LAAR Courier."""

    DEFAULT_URL_TEMPLATE = (
        "https://fenixoper.laarcourier.com/Tracking/Guiacompleta.aspx?Guia={guia}"
    )
    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    PARCEL_ID_PATTERN = r"^[A-Z]{2}\d{5,10}$"


class LogConfig:
    """Configuración de logging y formatos de fecha."""

    LOGS_DIR = "logs"
    LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    DATE_FORMAT = "%Y-%m-%d"
    DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
