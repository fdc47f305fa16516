"""
Paquete de utilidades del sistema de tracking LAAR.

Módulos disponibles:
    - constants: Constantes del sistema centralizadas
    - credentials_manager: Credenciales de la cuenta de servicio Google
    - job_lock: Lock con vencimiento contra ejecuciones solapadas
    - time_utils: Fechas en la zona horaria de la hoja

Autor: Sistema de Tracking LAAR
Fecha: Octubre 2025
"""

from .constants import (
    ColumnHeaders,
    BatchConfig,
    StatusValues,
    ResultMessages,
    TrackingConfig,
    LogConfig,
)
from .job_lock import JobLock

__all__ = [
    "ColumnHeaders",
    "BatchConfig",
    "StatusValues",
    "ResultMessages",
    "TrackingConfig",
    "LogConfig",
    "JobLock",
]
