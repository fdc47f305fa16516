"""
Extracción de datos de la página de rastreo de LAAR Courier.

Ambos motores de scraping (Playwright y requests) obtienen el HTML de la
página y delegan aquí. Cada campo se busca con una cascada de estrategias:

1. Selectores CSS directos.
2. Búsqueda por etiqueta en filas de tabla ("Estado", "Origen", ...).
3. Patrones de texto sobre el contenido completo de la página.

Si ninguna estrategia encuentra el estado se usa "No disponible"; los demás
campos quedan vacíos.
"""
from __future__ import annotations
import logging
import re
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from ..models import ScrapedStatus
from ..utils.constants import StatusValues

logger = logging.getLogger(__name__)


# field -> CSS selectors, in priority order
SELECTORS: Dict[str, List[str]] = {
    "status": [".estado", "#estado", ".estado-guia", "[class*=\"estado\"]", "[id*=\"estado\"]"],
    "origin_city": [".origen", "#origen", ".ciudad-origen", "[class*=\"origen\"]"],
    "destination_city": [".destino", "#destino", ".ciudad-destino", "[class*=\"destino\"]"],
    "delivered_to": [".receptor", ".entregado-a", "[class*=\"entregado\"]", "[class*=\"receptor\"]"],
    "delivered_at": [".fecha-entrega", "[class*=\"fecha\"]"],
}

# field -> row labels, in priority order
ROW_LABELS: Dict[str, List[str]] = {
    "status": ["estado"],
    "origin_city": ["origen"],
    "destination_city": ["destino"],
    "delivered_to": ["entregado a", "recibido por", "entregado", "recibido"],
    "delivered_at": ["fecha de entrega", "fecha"],
}

# field -> text patterns, last resort
TEXT_PATTERNS: Dict[str, List[re.Pattern]] = {
    "status": [re.compile(r"Estado[:\s]*([^\n<>]+)", re.I), re.compile(r"Status[:\s]*([^\n<>]+)", re.I)],
    "origin_city": [re.compile(r"Origen[:\s]*([^\n<>]+)", re.I)],
    "destination_city": [re.compile(r"Destino[:\s]*([^\n<>]+)", re.I)],
    "delivered_to": [re.compile(r"Entregado a[:\s]*([^\n<>]+)", re.I)],
    "delivered_at": [re.compile(r"Fecha[^\n<>]*entrega[:\s]*([^\n<>]+)", re.I)],
}


def _clean(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def by_selectors(soup: BeautifulSoup, selectors: Sequence[str]) -> str:
    for selector in selectors:
        element = soup.select_one(selector)
        if element is not None:
            text = _clean(element.get_text(" "))
            if text:
                return text
    return ""


def by_row_label(soup: BeautifulSoup, label: str) -> str:
    """Value of the first row whose text contains `label`: its last cell."""
    wanted = label.lower()
    for row in soup.select("tr, .row"):
        if wanted not in row.get_text(" ").lower():
            continue
        cells = row.select("td, .cell, span, div")
        if len(cells) > 1:
            value = _clean(cells[-1].get_text(" "))
            if value and value.lower() != wanted:
                return value
    return ""


def by_text_pattern(text: str, patterns: Sequence[re.Pattern]) -> str:
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return _clean(match.group(1))
    return ""


def extract_field(soup: BeautifulSoup, page_text: str, field_name: str) -> str:
    value = by_selectors(soup, SELECTORS[field_name])
    if value:
        return value
    for label in ROW_LABELS[field_name]:
        value = by_row_label(soup, label)
        if value:
            return value
    return by_text_pattern(page_text, TEXT_PATTERNS[field_name])


def extract_tracking_data(html: str, parcel_id: str, url: str = "") -> ScrapedStatus:
    """Parse the tracking page HTML into a ScrapedStatus.

    Never raises on odd markup; a miss yields status "No disponible".
    """
    soup = BeautifulSoup(html or "", "html.parser")
    page_text = soup.get_text("\n")

    data = {name: extract_field(soup, page_text, name) for name in SELECTORS}
    status = data.pop("status") or StatusValues.NO_DISPONIBLE
    if status == StatusValues.NO_DISPONIBLE:
        logger.warning("No se encontró el estado para %s", parcel_id)
    return clean_scraped_data(ScrapedStatus(parcel_id=parcel_id, status=status, url=url, **data))


def clean_scraped_data(data: ScrapedStatus) -> ScrapedStatus:
    return ScrapedStatus(
        parcel_id=(data.parcel_id or "").strip(),
        status=(data.status or "").strip() or StatusValues.NO_DISPONIBLE,
        origin_city=(data.origin_city or "").strip(),
        destination_city=(data.destination_city or "").strip(),
        delivered_to=(data.delivered_to or "").strip(),
        delivered_at=(data.delivered_at or "").strip(),
        url=data.url,
    )


def is_valid_scraped_data(data: Optional[ScrapedStatus]) -> bool:
    return bool(data and data.parcel_id and data.is_available
                and data.status != StatusValues.DESCONOCIDO)
