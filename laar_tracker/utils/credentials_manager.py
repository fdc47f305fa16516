"""
Módulo de gestión de credenciales para Google Sheets.

Centraliza la carga de la cuenta de servicio usada para acceder a la hoja
de tracking. Las credenciales pueden venir codificadas en Base64 en una
variable de entorno (despliegues sin disco) o desde un archivo JSON local.

Autor: Sistema de Tracking LAAR
Fecha: Octubre 2025
"""

from __future__ import annotations
import base64
import binascii
import json
import logging

from oauth2client.service_account import ServiceAccountCredentials

from ..config import Settings
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class CredentialsManager:
    """
    Gestor centralizado de credenciales de la cuenta de servicio.

    Attributes:
        SCOPES (list[str]): Alcances requeridos para Google Sheets
        _credentials: Credenciales ya cargadas (cache)
    """

    SCOPES = [
        "https://www.googleapis.com/auth/spreadsheets",
    ]

    _credentials: ServiceAccountCredentials | None = None

    @classmethod
    def load_credentials(cls, settings: Settings) -> ServiceAccountCredentials:
        """
        Carga las credenciales según la configuración.

        Prioriza GOOGLE_CREDENTIALS_BASE64 sobre GOOGLE_CREDENTIALS_FILE.
        Las credenciales se cargan una sola vez por proceso.

        Args:
            settings (Settings): Configuración validada de la aplicación

        Returns:
            ServiceAccountCredentials: Credenciales con los scopes necesarios

        Raises:
            ConfigurationError: Si el contenido o el archivo son inválidos
        """
        if cls._credentials is not None:
            logger.debug("Reutilizando credenciales cargadas previamente")
            return cls._credentials

        if settings.credentials_base64:
            logger.info("Cargando credenciales desde GOOGLE_CREDENTIALS_BASE64")
            info = cls.decode_base64_credentials(settings.credentials_base64)
            try:
                cls._credentials = ServiceAccountCredentials.from_json_keyfile_dict(info, cls.SCOPES)
            except (KeyError, ValueError) as e:
                raise ConfigurationError(f"Credenciales Base64 inválidas: {e}") from e
        else:
            path = settings.credentials_file
            logger.info("Cargando credenciales desde: %s", path)
            try:
                cls._credentials = ServiceAccountCredentials.from_json_keyfile_name(path, cls.SCOPES)
            except FileNotFoundError as e:
                raise ConfigurationError(
                    f"No se pudo encontrar el archivo de credenciales: {path}") from e
            except (KeyError, ValueError) as e:
                raise ConfigurationError(f"Error al procesar credenciales: {e}") from e

        logger.info("Credenciales cargadas exitosamente")
        return cls._credentials

    @staticmethod
    def decode_base64_credentials(encoded: str) -> dict:
        """
        Decodifica el JSON de la cuenta de servicio desde Base64.

        Raises:
            ConfigurationError: Si el texto no es Base64 o no contiene JSON
        """
        try:
            raw = base64.b64decode(encoded, validate=False).decode("utf-8")
            info = json.loads(raw)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise ConfigurationError(
                f"GOOGLE_CREDENTIALS_BASE64 no contiene un JSON válido: {e}") from e
        if not isinstance(info, dict):
            raise ConfigurationError("GOOGLE_CREDENTIALS_BASE64 debe codificar un objeto JSON")
        return info

    @classmethod
    def reset_credentials(cls) -> None:
        """Olvida las credenciales cargadas; útil en tests."""
        cls._credentials = None
