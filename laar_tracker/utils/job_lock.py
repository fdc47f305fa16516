"""
Lock consultivo con vencimiento para el job de conciliación.

Evita que dos ejecuciones programadas se solapen sobre la misma hoja. El
lock es un archivo JSON con el nombre del job, un token del dueño y la hora
de vencimiento; un lock vencido se puede tomar aunque el archivo exista.

El archivo se publica con os.link desde un temporal ya escrito: la creación
falla si otro proceso lo publicó antes y nunca se lee un lock a medio
escribir. Para tomar un lock vencido primero se renombra el archivo viejo;
solo un proceso logra moverlo.

Autor: Sistema de Tracking LAAR
Fecha: Octubre 2025
"""

from __future__ import annotations
import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class JobLock:
    """
    Lock por archivo con lease.

    Attributes:
        job_name (str): Nombre fijo del job protegido
        path (str): Ruta del archivo de lock
        lease_seconds (int): Vigencia del lock desde que se toma o renueva
    """

    def __init__(self, path: str, job_name: str = "reconciliation", lease_seconds: int = 900,
                 clock: Callable[[], float] = time.time):
        self.path = path
        self.job_name = job_name
        self.lease_seconds = lease_seconds
        self._clock = clock
        self._token: Optional[str] = None

    def _read(self, path: Optional[str] = None) -> Dict[str, Any]:
        path = path or self.path
        if not os.path.exists(path):
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Lock ilegible en %s, se considera libre: %s", path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _payload(self, token: str, now: float) -> Dict[str, Any]:
        return {"job": self.job_name, "owner": token, "acquired_at": now,
                "expires_at": now + self.lease_seconds}

    def _write_temp(self, payload: Dict[str, Any]) -> str:
        tmp_path = f"{self.path}.{payload['owner']}.{uuid.uuid4().hex[:8]}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        return tmp_path

    def _publish(self, payload: Dict[str, Any]) -> bool:
        """Crea el archivo de lock solo si no existe. Retorna False si ya existía."""
        tmp_path = self._write_temp(payload)
        try:
            os.link(tmp_path, self.path)
            return True
        except FileExistsError:
            return False
        finally:
            os.remove(tmp_path)

    def _evict(self, expected_owner: Optional[str]) -> bool:
        """
        Retira el archivo de lock si su dueño es `expected_owner`.

        El archivo se renombra antes de mirarlo; si resulta ser de otro dueño
        se vuelve a publicar y se retorna False.
        """
        moved = f"{self.path}.{uuid.uuid4().hex}.old"
        try:
            os.rename(self.path, moved)
        except FileNotFoundError:
            return True
        try:
            if self._read(moved).get("owner") == expected_owner:
                return True
            try:
                os.link(moved, self.path)
            except FileExistsError:
                pass
            return False
        finally:
            os.remove(moved)

    def _is_live(self, data: Dict[str, Any], now: float) -> bool:
        return data.get("job") == self.job_name and float(data.get("expires_at", 0)) > now

    def acquire(self) -> bool:
        """Toma el lock si está libre o vencido. Retorna False si está tomado."""
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        token = uuid.uuid4().hex
        now = self._clock()
        payload = self._payload(token, now)

        if not self._publish(payload):
            current = self._read()
            if self._is_live(current, now):
                logger.warning("Job '%s' ya en ejecución (owner=%s)", self.job_name, current.get("owner"))
                return False
            logger.info("Lock '%s' vencido o ilegible, se toma el relevo", self.job_name)
            if not self._evict(current.get("owner")) or not self._publish(payload):
                logger.warning("Otro proceso tomó el lock '%s' primero", self.job_name)
                return False

        self._token = token
        logger.debug("Lock '%s' tomado hasta %.0f", self.job_name, now + self.lease_seconds)
        return True

    def renew(self) -> bool:
        """
        Extiende el lease desde ahora si el lock sigue siendo de este dueño.

        Retorna False si no se tiene el lock o si otro proceso lo tomó.
        """
        if self._token is None:
            return False
        current = self._read()
        if current.get("owner") != self._token:
            logger.warning("Lock '%s' ya no pertenece a esta ejecución", self.job_name)
            return False
        now = self._clock()
        payload = self._payload(self._token, now)
        payload["acquired_at"] = current.get("acquired_at", now)
        os.replace(self._write_temp(payload), self.path)
        logger.debug("Lock '%s' renovado hasta %.0f", self.job_name, payload["expires_at"])
        return True

    def release(self) -> None:
        """Libera el lock solo si sigue perteneciendo a este dueño."""
        if self._token is None:
            return
        self._evict(self._token)
        self._token = None

    @contextmanager
    def held(self) -> Iterator[bool]:
        acquired = self.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
