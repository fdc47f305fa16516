"""
Módulo de operaciones principales del sistema de tracking.

Contiene el job de conciliación (lee la hoja, consulta en LAAR las guías
que no están en estado final y escribe los cambios) y las operaciones
manuales que lo acompañan: scraping bajo demanda, carga de guías desde
archivo y formato de errores para las superficies CLI/HTTP.

Autor: Sistema de Tracking LAAR
Fecha: Octubre 2025
"""

from __future__ import annotations
import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..exceptions import ValidationError
from ..models import ScrapeOutcome
from ..services.record_store import TrackingStore
from ..services.tracker_service import TrackerService
from ..utils.constants import BatchConfig, ResultMessages, StatusValues
from ..utils.job_lock import JobLock
from ..utils.time_utils import DEFAULT_TIMEZONE, format_datetime, now_local
from ..web.extractors import is_valid_scraped_data
from .scrape_queue import ScrapeQueue

logger = logging.getLogger(__name__)

# Accepted headers for the parcel column when loading from a file
PARCEL_COLUMN_CANDIDATES = ("GUIA", "GUÍA", "NUMERO GUIA", "NÚMERO GUIA", "PARCEL_ID")


def _empty_update_result() -> Dict[str, Any]:
    return {"success": True, "updated": 0, "skipped": 0, "errors": 0, "details": []}


def _split_outcomes(outcomes: Sequence[ScrapeOutcome]):
    """Separate usable scrapes from failures; "No disponible" counts as failure."""
    successes: List[ScrapeOutcome] = []
    failures: List[Dict[str, Any]] = []
    for outcome in outcomes:
        if outcome.success and is_valid_scraped_data(outcome.data):
            successes.append(outcome)
        elif outcome.success:
            failures.append({"parcel_id": outcome.parcel_id, "error": StatusValues.NO_DISPONIBLE})
        else:
            failures.append({"parcel_id": outcome.parcel_id, "error": outcome.error})
    return successes, failures


class ReconciliationJob:
    """
    Job programado que refresca el estado de las guías pendientes.

    Pasos: leer todas las guías, filtrar las que no están en estado final,
    consultarlas de a una con una pausa fija, y aplicar los resultados con
    update_pending_only. Solo un fallo en la lectura inicial aborta el job.

    Attributes:
        store (TrackingStore): Acceso a la hoja de tracking
        scraper: Objeto con método scrape(parcel_id) -> ScrapedStatus
        delay_seconds (float): Intervalo mínimo entre consultas
        lock (JobLock | None): Lock opcional contra ejecuciones solapadas
    """

    def __init__(
        self,
        store: TrackingStore,
        scraper,
        delay_seconds: float = BatchConfig.DEFAULT_SCRAPING_DELAY_MS / 1000.0,
        lock: Optional[JobLock] = None,
        timezone: str = DEFAULT_TIMEZONE,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.store = store
        self.scraper = scraper
        self.delay_seconds = delay_seconds
        self.lock = lock
        self.timezone = timezone
        self._sleep = sleep
        self._queue: Optional[ScrapeQueue] = None
        self._cancel_requested = False

    def cancel(self) -> None:
        """Detiene el encolado de nuevas consultas; la actual termina.

        Aplica a la ejecución en curso o, si no hay ninguna, a la próxima.
        """
        self._cancel_requested = True
        if self._queue is not None:
            self._queue.cancel()

    def run(self) -> Dict[str, Any]:
        try:
            if self.lock is None:
                return self._run()
            with self.lock.held() as acquired:
                if not acquired:
                    return {
                        "success": False,
                        "message": ResultMessages.ALREADY_RUNNING,
                        "execution_time": format_datetime(now_local(self.timezone), self.timezone),
                    }
                return self._run()
        finally:
            self._cancel_requested = False
            self._queue = None

    def _renew_lock(self, parcel_id: str) -> None:
        if self.lock is None:
            return
        if not self.lock.renew():
            logger.error("[CRON] Se perdió el lock antes de %s; no se consultan más guías", parcel_id)
            self._queue.cancel()

    def _run(self) -> Dict[str, Any]:
        started = time.monotonic()
        execution_time = format_datetime(now_local(self.timezone), self.timezone)
        logger.info("[CRON] Iniciando actualización automática: %s", execution_time)

        records = self.store.get_all()
        logger.info("[CRON] Total de guías en el sistema: %d", len(records))

        pending = [r for r in records if not TrackerService.is_final_state(r.status)]
        logger.info("[CRON] Guías pendientes de actualización: %d", len(pending))

        if not pending:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.info("[CRON] No hay guías pendientes. Duración: %dms", duration_ms)
            return {
                "success": True,
                "message": "No pending records",
                "execution_time": execution_time,
                "duration": f"{duration_ms}ms",
                "stats": {"total": len(records), "pending": 0, "scraped": 0, "updated": 0,
                          "skipped": 0, "errors": 0, "failed": 0},
                "details": {"scraping": {"successful": 0, "failed": 0, "failures": [], "not_started": []},
                            "updates": []},
            }

        queue = ScrapeQueue(self.scraper.scrape, self.delay_seconds, sleep=self._sleep,
                            before_each=self._renew_lock)
        self._queue = queue
        if self._cancel_requested:
            queue.cancel()
        outcomes = queue.run([r.parcel_id for r in pending])
        successes, failures = _split_outcomes(outcomes)
        logger.info("[CRON] Scraping completado: %d exitosas, %d fallidas", len(successes), len(failures))

        updates = [{"parcel_id": o.parcel_id, "data": o.data.as_update()} for o in successes]
        update_result = self.store.update_pending_only(updates) if updates else _empty_update_result()
        logger.info(
            "[CRON] Actualización completada: %d actualizadas, %d omitidas, %d errores",
            update_result["updated"], update_result["skipped"], update_result["errors"],
        )

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("[CRON] Proceso completado. Duración total: %dms", duration_ms)
        return {
            "success": True,
            "message": "Reconciliation completed",
            "execution_time": execution_time,
            "duration": f"{duration_ms}ms",
            "stats": {
                "total": len(records),
                "pending": len(pending),
                "scraped": len(successes),
                "updated": update_result["updated"],
                "skipped": update_result["skipped"],
                "errors": update_result["errors"],
                "failed": len(failures),
            },
            "details": {
                "scraping": {"successful": len(successes), "failed": len(failures),
                             "failures": failures, "not_started": list(queue.not_started)},
                "updates": update_result["details"],
            },
        }


def validate_parcel_batch(parcel_ids: Sequence[str], max_batch: int) -> List[str]:
    """
    Limpia y valida una lista de guías recibida desde CLI/HTTP.

    Raises:
        ValidationError: Si la lista está vacía, no tiene guías válidas o
            supera el máximo por lote
    """
    if not parcel_ids:
        raise ValidationError("Debes proporcionar al menos una guía")
    cleaned = TrackerService.dedupe_valid(parcel_ids)
    if not cleaned:
        raise ValidationError("No se proporcionaron guías válidas")
    if len(cleaned) > max_batch:
        raise ValidationError(f"Máximo {max_batch} guías por lote, se recibieron {len(cleaned)}")
    return cleaned


def scrape_parcels(
    parcel_ids: Sequence[str],
    scraper,
    delay_seconds: float,
    max_batch: int = BatchConfig.DEFAULT_MAX_PER_BATCH,
    store: Optional[TrackingStore] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> Dict[str, Any]:
    """
    Scraping bajo demanda de una lista explícita de guías.

    Si se pasa `store`, los resultados utilizables se aplican con
    update_pending_only (las guías en estado final no se tocan).
    """
    cleaned = validate_parcel_batch(parcel_ids, max_batch)
    logger.info("Iniciando scraping de %d guías...", len(cleaned))

    outcomes = ScrapeQueue(scraper.scrape, delay_seconds, sleep=sleep).run(cleaned)
    successes, failures = _split_outcomes(outcomes)

    result: Dict[str, Any] = {
        "success": True,
        "message": f"Scraping completado: {len(successes)} exitosas, {len(failures)} fallidas",
        "total": len(outcomes),
        "successful": len(successes),
        "failed": len(failures),
        "results": [o.to_dict() for o in outcomes],
    }
    if store is not None:
        updates = [{"parcel_id": o.parcel_id, "data": o.data.as_update()} for o in successes]
        result["updates"] = store.update_pending_only(updates) if updates else _empty_update_result()
    return result


def load_parcels_from_file(path: str) -> List[str]:
    """
    Lee números de guía desde un Excel (.xlsx/.xls) o CSV.

    Busca la columna GUIA (o variantes) sin distinguir mayúsculas, descarta
    vacíos, inválidos y duplicados.

    Raises:
        ValidationError: Si el archivo no existe o no tiene columna de guías
    """
    import pandas as pd

    if not os.path.exists(path):
        raise ValidationError(f"Archivo no encontrado: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext in {".xlsx", ".xls"}:
        df = pd.read_excel(path, dtype=str)
    elif ext == ".csv":
        df = pd.read_csv(path, dtype=str)
    else:
        raise ValidationError(f"Formato no soportado: {ext or path}")

    df.columns = [str(col).strip().upper() for col in df.columns]
    column = next((c for c in PARCEL_COLUMN_CANDIDATES if c in df.columns), None)
    if column is None:
        raise ValidationError(
            f"Columna de guías no encontrada; se esperaba una de {', '.join(PARCEL_COLUMN_CANDIDATES)}")

    values = df[column].dropna().tolist()
    parcels = TrackerService.dedupe_valid(values)
    logger.info("Procesadas %d guías desde %s (%d filas)", len(parcels), path, len(values))
    return parcels


def handle_error(error: Exception, context: str = "Operación", timezone: str = DEFAULT_TIMEZONE) -> Dict[str, Any]:
    """Formatea un error como respuesta estructurada."""
    logger.error("Error en %s: %s", context, error)
    return {
        "success": False,
        "error": str(error) or "Error desconocido",
        "context": context,
        "timestamp": format_datetime(now_local(timezone), timezone),
    }
