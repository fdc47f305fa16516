"""FastAPI surface for the tracking dashboard and the scheduled trigger."""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import Settings
from ..core.app_setup import ServiceContainer, create_reconciliation_job, create_scraper, create_service_container
from ..core.operations import handle_error, scrape_parcels
from ..exceptions import ConfigurationError, TransportError, ValidationError

logger = logging.getLogger(__name__)

app = FastAPI(title="LAAR Tracking API", version="1.0.0")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.load()


@lru_cache(maxsize=1)
def _container() -> ServiceContainer:
    return create_service_container(get_settings())


def get_container() -> ServiceContainer:
    return _container()


def get_scraper_factory():
    return create_scraper


class SheetsRequest(BaseModel):
    """Body for POST /api/sheets; which fields are required depends on action."""
    record: Optional[Dict[str, Any]] = None
    records: Optional[List[Dict[str, Any]]] = None
    parcel_id: Optional[str] = None
    updates: Optional[Dict[str, Any]] = None


class ScrapeRequest(BaseModel):
    parcel_ids: List[str] = Field(default_factory=list)
    apply: bool = False


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})


@app.exception_handler(TransportError)
async def _transport_error(request: Request, exc: TransportError):
    return JSONResponse(status_code=500, content=handle_error(exc, f"{request.method} {request.url.path}"))


@app.exception_handler(ConfigurationError)
async def _configuration_error(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=500, content=handle_error(exc, "Configuración"))


def verify_cron_secret(
    authorization: Optional[str] = Header(default=None),
    container: ServiceContainer = Depends(get_container),
) -> bool:
    """Permissive unless CRON_SECRET is configured."""
    secret = container.settings.cron_secret
    if secret and authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="No autorizado")
    return True


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/api/sheets")
def read_sheets(action: str, hours: float = 24.0, container: ServiceContainer = Depends(get_container)):
    store = container.store
    if action == "all":
        records = store.get_all()
        return {"success": True, "count": len(records), "records": [r.to_dict() for r in records]}
    if action == "stats":
        return {"success": True, "stats": store.get_stats()}
    if action == "recent-delivered":
        records = store.get_recently_delivered(hours)
        return {"success": True, "count": len(records), "records": [r.to_dict() for r in records]}
    raise HTTPException(status_code=400, detail="Acción no válida. Usa: all, stats o recent-delivered")


@app.post("/api/sheets")
def write_sheets(action: str, body: SheetsRequest, container: ServiceContainer = Depends(get_container)):
    store = container.store
    if action == "add":
        if not body.record:
            raise HTTPException(status_code=400, detail='Falta el parámetro "record"')
        return store.add(body.record)
    if action == "add-multiple":
        if body.records is None:
            raise HTTPException(status_code=400, detail='Falta el parámetro "records" (debe ser una lista)')
        if len(body.records) > container.settings.max_parcels_per_batch:
            raise ValidationError(f"Máximo {container.settings.max_parcels_per_batch} guías por lote")
        return store.add_multiple(body.records)
    if action == "update":
        if not body.parcel_id or body.updates is None:
            raise HTTPException(status_code=400, detail='Faltan parámetros "parcel_id" o "updates"')
        return store.update(body.parcel_id, body.updates)
    raise HTTPException(status_code=400, detail="Acción no válida. Usa: add, add-multiple o update")


@app.post("/api/scrape")
def scrape(body: ScrapeRequest, container: ServiceContainer = Depends(get_container),
           scraper_factory=Depends(get_scraper_factory)):
    settings = container.settings
    scraper = scraper_factory(settings)
    try:
        return scrape_parcels(
            body.parcel_ids,
            scraper,
            delay_seconds=settings.scraping_delay_seconds,
            max_batch=settings.max_parcels_per_batch,
            store=container.store if body.apply else None,
        )
    finally:
        scraper.close()


def _run_job(container: ServiceContainer, scraper_factory) -> Dict[str, Any]:
    scraper = scraper_factory(container.settings)
    try:
        return create_reconciliation_job(container, scraper).run()
    finally:
        scraper.close()


@app.get("/api/cron")
def cron(_: bool = Depends(verify_cron_secret), container: ServiceContainer = Depends(get_container),
         scraper_factory=Depends(get_scraper_factory)):
    return _run_job(container, scraper_factory)


@app.post("/api/update-status")
def update_status(container: ServiceContainer = Depends(get_container),
                  scraper_factory=Depends(get_scraper_factory)):
    return _run_job(container, scraper_factory)
