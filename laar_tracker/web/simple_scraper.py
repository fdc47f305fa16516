"""
Scraper ligero para LAAR usando requests + BeautifulSoup.

Útil cuando la página de rastreo se sirve ya renderizada y no hace falta un
navegador. Comparte las estrategias de extracción con el scraper Playwright.
"""
from __future__ import annotations
import logging

import requests

from ..exceptions import TransportError
from ..models import ScrapedStatus
from ..services.tracker_service import TrackerService
from ..utils.constants import TrackingConfig
from .extractors import extract_tracking_data

logger = logging.getLogger(__name__)


class SimpleScraper:
    """Consulta la página pública de LAAR con una sesión HTTP por llamada.

    Uso mínimo:
        s = SimpleScraper()
        datos = s.scrape('LC51960903')
    """

    def __init__(self, url_template: str = TrackingConfig.DEFAULT_URL_TEMPLATE, timeout: int = 30):
        self.url_template = url_template
        self.timeout = timeout

    def scrape(self, parcel_id: str) -> ScrapedStatus:
        url = TrackerService.build_tracking_url(parcel_id, self.url_template)
        logger.info("Consultando LAAR (simple) %s", url)

        with requests.Session() as session:
            try:
                resp = session.get(
                    url,
                    timeout=self.timeout,
                    headers={"User-Agent": TrackingConfig.USER_AGENT},
                )
                resp.raise_for_status()
            except requests.exceptions.RequestException as e:
                raise TransportError(f"Error HTTP al consultar {url}: {e}") from e

            return extract_tracking_data(resp.text, parcel_id, url=url)

    def close(self):
        """No-op; exists so callers can close any scraper like LaarScraper."""
