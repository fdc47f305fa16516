from bs4 import BeautifulSoup

from laar_tracker.models import ScrapedStatus
from laar_tracker.web.extractors import (
    by_row_label,
    by_selectors,
    by_text_pattern,
    clean_scraped_data,
    extract_tracking_data,
    is_valid_scraped_data,
    TEXT_PATTERNS,
)


def test_strategy_direct_selector():
    html = '''
    <div class="guia-info">
      <span class="estado">EN TRANSITO</span>
      <span class="ciudad-origen">QUITO</span>
      <span class="ciudad-destino">GUAYAQUIL</span>
    </div>
    '''
    data = extract_tracking_data(html, "LC51960903", url="https://example/")
    assert data.status == "EN TRANSITO"
    assert data.origin_city == "QUITO"
    assert data.destination_city == "GUAYAQUIL"
    assert data.url == "https://example/"


def test_strategy_row_label():
    html = '''
    <table>
      <tr><td>Estado</td><td>ENTREGADO</td></tr>
      <tr><td>Origen</td><td>CUENCA</td></tr>
      <tr><td>Destino</td><td>LOJA</td></tr>
      <tr><td>Recibido por</td><td>MARIA LOPEZ</td></tr>
      <tr><td>Fecha de entrega</td><td>2025-10-18</td></tr>
    </table>
    '''
    data = extract_tracking_data(html, "LC51960903")
    assert data.status == "ENTREGADO"
    assert data.origin_city == "CUENCA"
    assert data.destination_city == "LOJA"
    assert data.delivered_to == "MARIA LOPEZ"
    assert data.delivered_at == "2025-10-18"


def test_strategy_text_pattern():
    html = "<body><p>Guía LC51960903</p><p>Estado: EN BODEGA DESTINO</p></body>"
    data = extract_tracking_data(html, "LC51960903")
    assert data.status == "EN BODEGA DESTINO"


def test_selector_wins_over_table():
    html = '''
    <div id="estado">EN REPARTO</div>
    <table><tr><td>Estado</td><td>ENTREGADO</td></tr></table>
    '''
    assert extract_tracking_data(html, "LC51960903").status == "EN REPARTO"


def test_miss_returns_not_available():
    data = extract_tracking_data("<html><body><p>Sin resultados</p></body></html>", "LC51960903")
    assert data.status == "No disponible"
    assert data.is_available is False
    assert data.origin_city == ""
    assert data.as_update() == {"status": "No disponible"}


def test_helpers_on_soup():
    soup = BeautifulSoup('<div class="row"><span>Origen</span><span>AMBATO</span></div>', "html.parser")
    assert by_row_label(soup, "origen") == "AMBATO"
    assert by_selectors(soup, [".nada", ".tampoco"]) == ""
    assert by_text_pattern("Destino:  MANTA\n", TEXT_PATTERNS["destination_city"]) == "MANTA"


def test_clean_and_validate_scraped_data():
    raw = ScrapedStatus(" LC51960903 ", status="  ", origin_city=" QUITO ")
    cleaned = clean_scraped_data(raw)
    assert cleaned.parcel_id == "LC51960903"
    assert cleaned.status == "No disponible"
    assert cleaned.origin_city == "QUITO"
    assert is_valid_scraped_data(cleaned) is False
    assert is_valid_scraped_data(ScrapedStatus("LC51960903", status="Desconocido")) is False
    assert is_valid_scraped_data(ScrapedStatus("LC51960903", status="En tránsito")) is True
    assert is_valid_scraped_data(None) is False
