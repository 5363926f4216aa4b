"""Google Sheets sink using the Sheets v4 REST API."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from ...constants import SHEET_COLUMNS
from ...errors import SyncError
from .base import SheetRow, SheetSink

logger = logging.getLogger(__name__)

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Record ids live in the column right after the nine data columns (A-I)
KEY_COLUMN = "J"
KEY_HEADER = "RecordId"

# Refresh this long before Google says the token expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class GoogleSheetsSink(SheetSink):
    """Appends meeting rows to a worksheet, updating in place on re-push.

    Authentication is either a fixed ``access_token`` (rotated outside the
    process) or an OAuth ``refresh_token`` with client credentials, in which
    case access tokens are fetched on demand, renewed before they expire and
    renewed once more if the API answers 401.

    Args:
        spreadsheet_id: Target spreadsheet
        access_token: OAuth bearer token with the spreadsheets scope
        worksheet: Worksheet (tab) name
        refresh_token: OAuth refresh token used to mint access tokens
        client_id: OAuth client id paired with ``refresh_token``
        client_secret: OAuth client secret paired with ``refresh_token``
        client: Optional preconfigured httpx client (tests)
    """

    name = "google_sheets"

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: Optional[str] = None,
        worksheet: str = "Sheet1",
        *,
        refresh_token: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.worksheet = worksheet
        self._access_token = access_token or None
        self._refresh_token = refresh_token or None
        self._client_id = client_id
        self._client_secret = client_secret
        self._expires_at: Optional[float] = None
        self._client = client or httpx.AsyncClient(
            base_url=f"{SHEETS_API_URL}/{spreadsheet_id}",
            timeout=timeout,
        )
        self._header_checked = False

    @property
    def can_refresh(self) -> bool:
        return bool(self._refresh_token and self._client_id and self._client_secret)

    def _range(self, cells: str) -> str:
        return f"{self.worksheet}!{cells}"

    def _token_stale(self) -> bool:
        if self._access_token is None:
            return True
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    async def _refresh_access_token(self) -> None:
        try:
            response = await self._client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self._refresh_token,
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SyncError(
                f"Google token refresh returned {e.response.status_code}",
                details=e.response.text[:500],
            ) from e
        except httpx.HTTPError as e:
            raise SyncError(f"Google token refresh failed: {e}") from e

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise SyncError("Google token refresh response did not include an access token")

        self._access_token = token
        expires_in = data.get("expires_in")
        self._expires_at = (
            time.monotonic() + float(expires_in) - TOKEN_EXPIRY_MARGIN_SECONDS
            if expires_in
            else None
        )
        logger.info("Refreshed Google Sheets access token")

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._access_token}"} if self._access_token else {}
        return await self._client.request(method, url, headers=headers, **kwargs)

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict:
        try:
            if self.can_refresh and self._token_stale():
                await self._refresh_access_token()

            response = await self._send(method, url, **kwargs)
            if response.status_code == httpx.codes.UNAUTHORIZED and self.can_refresh:
                logger.warning("Google Sheets rejected the access token; refreshing")
                await self._refresh_access_token()
                response = await self._send(method, url, **kwargs)

            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SyncError(
                f"Google Sheets returned {e.response.status_code}",
                details=e.response.text[:500],
            ) from e
        except httpx.HTTPError as e:
            raise SyncError(f"Google Sheets request failed: {e}") from e
        return response.json() if response.content else {}

    async def _ensure_header(self) -> None:
        if self._header_checked:
            return
        data = await self._request("GET", f"/values/{self._range('A1:J1')}")
        if not data.get("values"):
            await self._request(
                "PUT",
                f"/values/{self._range('A1:J1')}",
                params={"valueInputOption": "RAW"},
                json={"values": [[*SHEET_COLUMNS, KEY_HEADER]]},
            )
            logger.info(f"Wrote header row to worksheet {self.worksheet}")
        self._header_checked = True

    async def _find_row(self, record_id: str) -> Optional[int]:
        data = await self._request("GET", f"/values/{self._range(f'{KEY_COLUMN}:{KEY_COLUMN}')}")
        for index, cells in enumerate(data.get("values", []), start=1):
            if cells and cells[0] == record_id:
                return index
        return None

    async def add_record(self, record_id: str, row: SheetRow) -> str:
        await self._ensure_header()
        values = [[*row.to_values(), record_id]]

        existing = await self._find_row(record_id)
        if existing is not None:
            cells = self._range(f"A{existing}:{KEY_COLUMN}{existing}")
            await self._request(
                "PUT",
                f"/values/{cells}",
                params={"valueInputOption": "RAW"},
                json={"values": values},
            )
            logger.info(f"Updated existing sheet row {cells} for record {record_id}")
            return cells

        data = await self._request(
            "POST",
            f"/values/{self._range(f'A:{KEY_COLUMN}')}:append",
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"values": values},
        )
        updated_range = data.get("updates", {}).get("updatedRange")
        if not updated_range:
            raise SyncError("Google Sheets append response did not include a range")
        logger.info(f"Appended sheet row {updated_range} for record {record_id}")
        return updated_range

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "", params={"fields": "spreadsheetId"})
            return True
        except SyncError as e:
            logger.warning(f"Google Sheets health check failed: {e}")
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
