"""
Módulo de configuración y setup de servicios.

Este módulo maneja la configuración inicial de la aplicación, incluyendo
los argumentos de línea de comandos, el logging y la inicialización de
los servicios principales (hoja de tracking y scraper).

Autor: Sistema de Tracking LAAR
Fecha: Octubre 2025
"""

from __future__ import annotations
import argparse
import logging
from typing import List, NamedTuple, Optional

from ..config import Settings
from ..logging_setup import setup_logging
from ..services.record_store import TrackingStore
from ..services.sheets_client import SheetsClient
from ..utils.credentials_manager import CredentialsManager
from ..utils.job_lock import JobLock
from ..web.laar_scraper import LaarScraper
from ..web.simple_scraper import SimpleScraper
from .operations import ReconciliationJob

logger = logging.getLogger(__name__)


class ServiceContainer(NamedTuple):
    """
    Contenedor de servicios inicializados de la aplicación.

    Attributes:
        settings (Settings): Configuración validada
        sheets (SheetsClient): Cliente de Google Sheets
        store (TrackingStore): Operaciones sobre guías
    """
    settings: Settings
    sheets: SheetsClient
    store: TrackingStore


def parse_command_line_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parsea argumentos de línea de comandos.

    Returns:
        argparse.Namespace: Comando y argumentos

    Raises:
        SystemExit: Si los argumentos son inválidos
    """
    parser = argparse.ArgumentParser(
        prog="laar_tracker",
        description="Seguimiento de guías LAAR Courier sobre Google Sheets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Ejemplos:
  %(prog)s cron
  %(prog)s add LC51960903 --status "En tránsito"
  %(prog)s add-multiple "LC51960903, LC51960904"
  %(prog)s scrape LC51960903 --apply
  %(prog)s serve --port 8000
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("cron", help="Ejecutar la conciliación de guías pendientes")
    sub.add_parser("list", help="Listar todas las guías")
    sub.add_parser("stats", help="Estadísticas por estado")

    recent = sub.add_parser("recent", help="Guías entregadas recientemente")
    recent.add_argument("--hours", type=float, default=24.0,
                        help="Ventana en horas (default: 24)")

    add = sub.add_parser("add", help="Agregar una guía")
    add.add_argument("parcel_id")
    add.add_argument("--status", default=None)
    add.add_argument("--origin", dest="origin_city", default=None)
    add.add_argument("--destination", dest="destination_city", default=None)

    add_multiple = sub.add_parser("add-multiple", help="Agregar guías separadas por comas")
    add_multiple.add_argument("parcels", help="Lista de guías, ej: 'LC1234567, LC7654321'")

    load_file = sub.add_parser("load-file", help="Agregar guías desde un Excel o CSV")
    load_file.add_argument("path")

    update = sub.add_parser("update", help="Actualizar campos de una guía")
    update.add_argument("parcel_id")
    update.add_argument("--status", default=None)
    update.add_argument("--origin", dest="origin_city", default=None)
    update.add_argument("--destination", dest="destination_city", default=None)
    update.add_argument("--delivered-to", dest="delivered_to", default=None)
    update.add_argument("--delivered-at", dest="delivered_at", default=None)

    scrape = sub.add_parser("scrape", help="Consultar guías en LAAR bajo demanda")
    scrape.add_argument("parcels", nargs="+")
    scrape.add_argument("--apply", action="store_true",
                        help="Escribir resultados en la hoja (solo guías no finales)")

    serve = sub.add_parser("serve", help="Levantar la API HTTP")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    if args.command == "recent" and args.hours <= 0:
        parser.error("--hours debe ser > 0")
    if args.command == "serve" and not (0 < args.port < 65536):
        parser.error("--port fuera de rango")
    return args


def initialize_application(settings: Settings) -> None:
    """
    Inicializa el logging y registra el inicio de la aplicación.
    """
    setup_logging(settings.log_level)
    logger.info("=== INICIO DEL SISTEMA DE TRACKING LAAR ===")
    logger.info("Modo headless: %s", settings.headless)
    logger.info("Hoja: %s / pestaña %s", settings.spreadsheet_id, settings.tab_name)


def create_service_container(settings: Settings) -> ServiceContainer:
    """
    Crea e inicializa los servicios de acceso a la hoja.

    Raises:
        ConfigurationError: Si las credenciales son inválidas
        TransportError: Si la hoja no se puede abrir
    """
    logger.info("Inicializando servicios principales...")
    credentials = CredentialsManager.load_credentials(settings)
    sheets = SheetsClient(credentials, settings.spreadsheet_id, settings.tab_name)
    sheets.ensure_headers()
    store = TrackingStore(sheets, timezone=settings.timezone)
    logger.info("Servicios inicializados correctamente")
    return ServiceContainer(settings=settings, sheets=sheets, store=store)


def create_scraper(settings: Settings):
    """Scraper según SCRAPER_ENGINE; el llamador debe cerrarlo con close()."""
    if settings.scraper_engine == "simple":
        return SimpleScraper(
            url_template=settings.tracking_url_template,
            timeout=max(1, settings.navigation_timeout_ms // 1000),
        )
    return LaarScraper(
        headless=settings.headless,
        timeout_ms=settings.navigation_timeout_ms,
        url_template=settings.tracking_url_template,
    )


def create_reconciliation_job(container: ServiceContainer, scraper) -> ReconciliationJob:
    settings = container.settings
    lock = JobLock(settings.lock_path, job_name="reconciliation",
                   lease_seconds=settings.lock_lease_seconds)
    return ReconciliationJob(
        container.store,
        scraper,
        delay_seconds=settings.scraping_delay_seconds,
        lock=lock,
        timezone=settings.timezone,
    )
