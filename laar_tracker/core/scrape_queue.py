"""
Cola de scraping secuencial con intervalo mínimo entre consultas.

Un solo worker consume números de guía en orden. Entre el inicio de una
consulta y el de la siguiente transcurre al menos `min_interval` segundos,
para no saturar el sitio de LAAR. cancel() impide que se inicien nuevas
consultas; la que está en curso termina y su resultado se conserva.

Autor: Sistema de Tracking LAAR
Fecha: Octubre 2025
"""

from __future__ import annotations
import logging
import threading
import time
from collections import deque
from typing import Callable, Iterable, List, Optional

from ..models import ScrapedStatus, ScrapeOutcome

logger = logging.getLogger(__name__)


class ScrapeQueue:
    """
    Ejecuta scrape_fn sobre cada guía, de a una, respetando el intervalo.

    before_each, si se pasa, se llama con cada guía justo antes de
    consultarla.

    Attributes:
        not_started (list[str]): Guías que quedaron sin consultar tras cancel()
    """

    def __init__(
        self,
        scrape_fn: Callable[[str], ScrapedStatus],
        min_interval: float,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        before_each: Optional[Callable[[str], None]] = None,
    ):
        self._scrape_fn = scrape_fn
        self._min_interval = max(0.0, float(min_interval))
        self._cancelled = threading.Event()
        self._sleep = sleep or self._cancelled.wait
        self._clock = clock
        self._before_each = before_each
        self.not_started: List[str] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        logger.info("Cancelación solicitada: no se iniciarán más consultas")
        self._cancelled.set()

    def _wait_turn(self, last_start: Optional[float]) -> None:
        if last_start is None or self._min_interval <= 0:
            return
        remaining = self._min_interval - (self._clock() - last_start)
        if remaining > 0:
            logger.debug("Esperando %.2fs antes de la siguiente consulta", remaining)
            self._sleep(remaining)

    def run(self, parcel_ids: Iterable[str]) -> List[ScrapeOutcome]:
        """
        Consulta cada guía y retorna un resultado por guía iniciada.

        Un error en una guía se registra en su ScrapeOutcome y no detiene
        la cola.
        """
        pending = deque(parcel_ids)
        total = len(pending)
        outcomes: List[ScrapeOutcome] = []
        last_start: Optional[float] = None

        while pending and not self.cancelled:
            self._wait_turn(last_start)
            if self.cancelled:
                break
            parcel_id = pending.popleft()
            last_start = self._clock()
            if self._before_each is not None:
                self._before_each(parcel_id)
            logger.info("Scraping %d/%d: %s", len(outcomes) + 1, total, parcel_id)
            try:
                data = self._scrape_fn(parcel_id)
                outcomes.append(ScrapeOutcome(parcel_id=parcel_id, success=True, data=data))
            except Exception as e:
                logger.error("Error en scraping de %s: %s", parcel_id, e)
                outcomes.append(ScrapeOutcome(parcel_id=parcel_id, success=False, error=str(e)))

        self.not_started = list(pending)
        if self.not_started:
            logger.warning("Cola cancelada: %d guías sin consultar", len(self.not_started))
        return outcomes
