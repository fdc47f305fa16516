"""
Módulo core del sistema de tracking LAAR.

Este paquete contiene la configuración de servicios y las operaciones
principales, incluyendo el job de conciliación de guías pendientes.

Módulos:
    - app_setup: Argumentos CLI, logging e inicialización de servicios
    - operations: Job de conciliación y operaciones manuales
    - scrape_queue: Cola secuencial de scraping con intervalo mínimo

Autor: Sistema de Tracking LAAR
Fecha: Octubre 2025
"""

from .app_setup import (
    ServiceContainer,
    parse_command_line_arguments,
    initialize_application,
    create_service_container,
    create_scraper,
    create_reconciliation_job,
)

from .operations import (
    ReconciliationJob,
    scrape_parcels,
    load_parcels_from_file,
    handle_error,
)

from .scrape_queue import ScrapeQueue

__all__ = [
    # Configuración y setup
    "ServiceContainer",
    "parse_command_line_arguments",
    "initialize_application",
    "create_service_container",
    "create_scraper",
    "create_reconciliation_job",

    # Operaciones principales
    "ReconciliationJob",
    "scrape_parcels",
    "load_parcels_from_file",
    "handle_error",
    "ScrapeQueue",
]
