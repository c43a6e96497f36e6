"""Google Sheets record store.

Each ledger table is a worksheet of one spreadsheet. Row 1 holds the header
fields; every following non-blank row is a record. All calls go through the
Sheets v4 REST API on an authorized requests session.

Environment (see pos_ledger.config.LedgerSettings.from_env):
  GOOGLE_SERVICE_ACCOUNT_EMAIL: service account client email
  GOOGLE_PRIVATE_KEY: service account PEM key (escaped newlines accepted)
  GOOGLE_SPREADSHEET_ID: target spreadsheet

Notes:
- No retry adapter is mounted; a failed call raises RemoteUnavailable and
  the caller decides what to do.
- The spreadsheet must be shared with the service account email.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import google.auth.exceptions
import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from pos_ledger.exceptions import RemoteUnavailable
from pos_ledger.store.base import Metadata, RecordStore, Row, RowPredicate, TableHandle

if TYPE_CHECKING:
    from pos_ledger.config import LedgerSettings

logger = logging.getLogger(__name__)

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


def a1_table_range(name: str) -> str:
    """Return the A1 range covering a whole worksheet.

    Examples:
        >>> a1_table_range("Stock")
        "'Stock'"
        >>> a1_table_range("Bob's")
        "'Bob''s'"
    """
    return "'" + name.replace("'", "''") + "'"


class GoogleSheetsRecordStore(RecordStore):
    """Record store backed by one Google spreadsheet.

    Example:
        >>> from pos_ledger.config import LedgerSettings
        >>> store = GoogleSheetsRecordStore.from_settings(LedgerSettings.from_env())
        >>> meta = store.load_metadata()
        >>> sorted(meta.tables)
        ['Menu', 'Orders', 'Stock']

    """

    def __init__(
        self,
        spreadsheet_id: str,
        session: requests.Session,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the store.

        Args:
            spreadsheet_id: Target spreadsheet ID.
            session: Session that adds authorization to each request.
            timeout: Per-request timeout in seconds.

        """
        self.spreadsheet_id = spreadsheet_id
        self.timeout = timeout
        self._session = session

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> GoogleSheetsRecordStore:
        """Build a store authenticated with the settings' service account."""
        info = {
            "type": "service_account",
            "client_email": settings.service_account_email,
            "private_key": settings.private_key,
            "token_uri": TOKEN_URI,
        }
        try:
            credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except (ValueError, google.auth.exceptions.GoogleAuthError) as e:
            raise RemoteUnavailable(f"Invalid service account credentials: {e}") from e
        return cls(
            spreadsheet_id=settings.spreadsheet_id,
            session=AuthorizedSession(credentials),
            timeout=settings.request_timeout,
        )

    # ------------------------- HTTP -------------------------

    def _url(self, suffix: str = "") -> str:
        return f"{SHEETS_API}/{self.spreadsheet_id}{suffix}"

    def _values_url(self, a1_range: str, suffix: str = "") -> str:
        return self._url(f"/values/{quote(a1_range, safe='')}{suffix}")

    def _request(self, method: str, url: str, what: str, **kwargs: Any) -> dict[str, Any]:
        """Send one request and return the decoded JSON body.

        Raises:
            RemoteUnavailable: On transport, auth or non-2xx HTTP errors.
        """
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise RemoteUnavailable(f"Timeout while trying to {what}: {e}") from e
        except (requests.RequestException, google.auth.exceptions.GoogleAuthError) as e:
            raise RemoteUnavailable(f"Failed to {what}: {e}") from e

        if resp.status_code == 404:
            raise RemoteUnavailable(
                f"Spreadsheet '{self.spreadsheet_id}' not found while trying to {what} (HTTP 404)."
            )
        if resp.status_code == 403:
            raise RemoteUnavailable(
                f"Access denied (HTTP 403) for spreadsheet '{self.spreadsheet_id}'. "
                "Share the sheet with the service account email."
            )
        if not (200 <= resp.status_code < 300):
            raise RemoteUnavailable(f"Failed to {what}. HTTP {resp.status_code}: {resp.text[:400]}")

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteUnavailable(f"Invalid JSON response while trying to {what}") from e

    def _read_values(self, name: str) -> list[list[str]]:
        body = self._request(
            "GET",
            self._values_url(a1_table_range(name)),
            f"read worksheet '{name}'",
            params={"majorDimension": "ROWS"},
        )
        return [[str(cell) for cell in line] for line in body.get("values", [])]

    # ------------------------- RecordStore -------------------------

    def load_metadata(self) -> Metadata:
        body = self._request(
            "GET",
            self._url(),
            "load spreadsheet info",
            params={"fields": "properties.title,sheets.properties(sheetId,title)"},
        )
        tables: dict[str, TableHandle] = {}
        for sheet in body.get("sheets", []):
            props = sheet.get("properties", {})
            title = props.get("title", "")
            tables[title] = TableHandle(name=title, table_id=props.get("sheetId", 0))
        title = body.get("properties", {}).get("title", "")
        logger.debug("Loaded spreadsheet '%s' with %d worksheet(s)", title, len(tables))
        return Metadata(title=title, tables=tables)

    def get_or_create_table(self, name: str, header_fields: Sequence[str]) -> TableHandle:
        existing = self.load_metadata().tables.get(name)
        if existing is not None:
            return existing

        logger.info("Creating worksheet '%s' with headers %s", name, list(header_fields))
        body = self._request(
            "POST",
            self._url(":batchUpdate"),
            f"create worksheet '{name}'",
            json={"requests": [{"addSheet": {"properties": {"title": name}}}]},
        )
        replies = body.get("replies", [{}])
        sheet_id = replies[0].get("addSheet", {}).get("properties", {}).get("sheetId", 0)

        header_range = f"{a1_table_range(name)}!1:1"
        self._request(
            "PUT",
            self._values_url(header_range),
            f"write headers of '{name}'",
            params={"valueInputOption": "RAW"},
            json={"range": header_range, "majorDimension": "ROWS", "values": [list(header_fields)]},
        )
        return TableHandle(name=name, table_id=sheet_id)

    def fetch_rows(self, handle: TableHandle) -> list[Row]:
        values = self._read_values(handle.name)
        if not values:
            return []
        headers = values[0]
        rows: list[Row] = []
        for line in values[1:]:
            if not any(cell.strip() for cell in line):
                continue
            # The API trims trailing empty cells
            padded = line + [""] * (len(headers) - len(line))
            rows.append(dict(zip(headers, padded)))
        logger.debug("Fetched %d row(s) from '%s'", len(rows), handle.name)
        return rows

    def append_row(self, handle: TableHandle, row: Row) -> None:
        self.append_rows(handle, [row])

    def append_rows(self, handle: TableHandle, rows: Sequence[Row]) -> None:
        """Append rows in a single values.append call."""
        if not rows:
            return
        values = self._request(
            "GET",
            self._values_url(f"{a1_table_range(handle.name)}!1:1"),
            f"read headers of '{handle.name}'",
        ).get("values", [[]])
        headers = [str(h) for h in values[0]] if values else []
        if not headers:
            raise RemoteUnavailable(f"Worksheet '{handle.name}' has no header row")

        self._request(
            "POST",
            self._values_url(a1_table_range(handle.name), ":append"),
            f"append {len(rows)} row(s) to '{handle.name}'",
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"majorDimension": "ROWS", "values": [[str(row.get(h, "")) for h in headers] for row in rows]},
        )
        logger.info("Appended %d row(s) to '%s'", len(rows), handle.name)

    def _find_first(self, handle: TableHandle, predicate: RowPredicate) -> tuple[int, list[str], list[str]] | None:
        """Locate the first data row matching predicate.

        Returns:
            Tuple of (zero-based sheet row offset, headers, padded cells), or
            None if nothing matched. Offset 0 is the header row.
        """
        values = self._read_values(handle.name)
        if not values:
            return None
        headers = values[0]
        for offset, line in enumerate(values[1:], start=1):
            if not any(cell.strip() for cell in line):
                continue
            padded = line + [""] * (len(headers) - len(line))
            if predicate(dict(zip(headers, padded))):
                return offset, headers, padded
        return None

    def update_row(self, handle: TableHandle, predicate: RowPredicate, row: Row) -> bool:
        found = self._find_first(handle, predicate)
        if found is None:
            return False
        offset, headers, cells = found
        updated = [str(row[h]) if h in row else cell for h, cell in zip(headers, cells)]

        row_range = f"{a1_table_range(handle.name)}!A{offset + 1}"
        self._request(
            "PUT",
            self._values_url(row_range),
            f"update row {offset + 1} of '{handle.name}'",
            params={"valueInputOption": "RAW"},
            json={"range": row_range, "majorDimension": "ROWS", "values": [updated]},
        )
        logger.info("Updated row %d of '%s'", offset + 1, handle.name)
        return True

    def delete_row(self, handle: TableHandle, predicate: RowPredicate) -> bool:
        found = self._find_first(handle, predicate)
        if found is None:
            return False
        offset = found[0]
        self._request(
            "POST",
            self._url(":batchUpdate"),
            f"delete row {offset + 1} of '{handle.name}'",
            json={
                "requests": [
                    {
                        "deleteDimension": {
                            "range": {
                                "sheetId": handle.table_id,
                                "dimension": "ROWS",
                                "startIndex": offset,
                                "endIndex": offset + 1,
                            }
                        }
                    }
                ]
            },
        )
        logger.info("Deleted row %d of '%s'", offset + 1, handle.name)
        return True

    def close(self) -> None:
        self._session.close()
