from __future__ import annotations
import logging
from contextlib import suppress

from playwright.sync_api import Error as PlaywrightError, sync_playwright, TimeoutError as PlaywrightTimeoutError

from ..exceptions import TransportError
from ..models import ScrapedStatus
from ..services.tracker_service import TrackerService
from ..utils.constants import TrackingConfig
from .extractors import extract_tracking_data

logger = logging.getLogger(__name__)


class LaarScraper:
    """Playwright-based scraper for the LAAR Courier tracking page.

    Keeps a single Chromium process alive and creates a new context per
    query to avoid state leakage. Extraction runs over the rendered HTML
    (see extractors); a page without a recognizable status yields
    "No disponible". Navigation or launch failures raise TransportError.
    """

    def __init__(self, headless: bool = True, timeout_ms: int = 30000,
                 url_template: str = TrackingConfig.DEFAULT_URL_TEMPLATE,
                 settle_ms: int = 2000):
        self._headless = headless
        self._timeout = int(timeout_ms)
        self._url_template = url_template
        self._settle_ms = settle_ms
        self._pw = None
        self.browser = None

    def start(self):
        if self.browser is not None:
            return
        try:
            self._pw = sync_playwright().start()
            logger.info("Launching Playwright Chromium. headless=%s", self._headless)
            launch_args = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]
            if not self._headless:
                launch_args.append("--start-maximized")
            self.browser = self._pw.chromium.launch(
                headless=self._headless,
                slow_mo=0 if self._headless else 250,
                args=launch_args,
            )
        except PlaywrightError as e:
            self.close()
            raise TransportError(f"No se pudo iniciar el navegador: {e}") from e

    def scrape(self, parcel_id: str) -> ScrapedStatus:
        """Return the fields found on the tracking page for `parcel_id`."""
        self.start()
        url = TrackerService.build_tracking_url(parcel_id, self._url_template)
        context = None
        page = None
        try:
            context = self.browser.new_context(
                viewport={"width": 1280, "height": 800},
                user_agent=TrackingConfig.USER_AGENT,
                locale="es-EC",
            )
            page = context.new_page()
            logger.info("Navegando a: %s", url)
            page.goto(url, timeout=self._timeout, wait_until="networkidle")
            # Let late scripts fill the detail table
            page.wait_for_timeout(self._settle_ms)
            html = page.content()
        except PlaywrightTimeoutError as e:
            raise TransportError(f"Timeout navegando a {url}: {e}") from e
        except PlaywrightError as e:
            raise TransportError(f"Error del navegador para {parcel_id}: {e}") from e
        finally:
            with suppress(Exception):
                if page:
                    page.close()
            with suppress(Exception):
                if context:
                    context.close()

        return extract_tracking_data(html, parcel_id, url=url)

    def close(self):
        with suppress(Exception):
            if self.browser:
                self.browser.close()
        with suppress(Exception):
            if self._pw:
                self._pw.stop()
        self.browser = None
        self._pw = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
