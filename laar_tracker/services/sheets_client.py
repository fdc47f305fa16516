from __future__ import annotations
from typing import Any, List
import logging

import gspread
import requests

from ..exceptions import TransportError
from ..utils.constants import ColumnHeaders

logger = logging.getLogger(__name__)

# Failures of the Sheets API or of the HTTP layer underneath it
_TRANSPORT_ERRORS = (gspread.exceptions.GSpreadException, requests.exceptions.RequestException)


class SheetsClient:
    """Encapsulates row operations on the tracking tab using gspread.

    Rows are addressed by their 1-based sheet row number; data starts at
    ColumnHeaders.FIRST_DATA_ROW. No retries: failures surface as
    TransportError.
    """

    def __init__(self, credentials, spreadsheet_id: str, tab_name: str = "Tracking"):
        self.tab_name = tab_name
        try:
            self.gc = gspread.authorize(credentials)
            self.spreadsheet = self.gc.open_by_key(spreadsheet_id)
            self._worksheet = self.spreadsheet.worksheet(tab_name)
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f"No se pudo abrir la hoja '{tab_name}': {e}") from e

    def _range(self, start_row: int, end_row: int | None = None) -> str:
        last = ColumnHeaders.LAST_COLUMN
        if end_row is None:
            return f"A{start_row}:{last}"
        return f"A{start_row}:{last}{end_row}"

    def read_rows(self) -> List[List[Any]]:
        """Return every data row (A2:J). Trailing empty cells may be missing."""
        try:
            values = self._worksheet.get(self._range(ColumnHeaders.FIRST_DATA_ROW))
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f"No se pudo leer la hoja '{self.tab_name}': {e}") from e
        return [list(row) for row in (values or [])]

    def append_row(self, values: List[Any]) -> None:
        try:
            self._worksheet.append_row(values, value_input_option="RAW", table_range="A1")
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f"No se pudo agregar la fila en '{self.tab_name}': {e}") from e
        logger.debug("Fila agregada: %s", values[:2])

    def update_row(self, row_index: int, values: List[Any]) -> None:
        a1_range = self._range(row_index, row_index)
        try:
            self._worksheet.update(values=[values], range_name=a1_range, value_input_option="RAW")
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f"No se pudo actualizar {a1_range} en '{self.tab_name}': {e}") from e
        logger.debug("Fila %d actualizada", row_index)

    def ensure_headers(self) -> None:
        """Write the header row when the tab is empty."""
        try:
            existing = self._worksheet.row_values(1)
            if not existing:
                self._worksheet.update(
                    values=[ColumnHeaders.ORDER],
                    range_name=self._range(1, 1),
                    value_input_option="RAW",
                )
                logger.info("Headers escritos en '%s'", self.tab_name)
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f"No se pudo verificar headers en '{self.tab_name}': {e}") from e
