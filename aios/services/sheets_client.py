"""Google Sheets v4 client for RFQ logging.

Service-account credentials come from GOOGLE_CLIENT_EMAIL and
GOOGLE_PRIVATE_KEY (``\\n`` escapes are expanded). Token refresh uses
google-auth; the REST calls go through httpx.
"""

import asyncio
import logging
import os
from typing import Any
from urllib.parse import quote

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from aios.errors import SheetsError

logger = logging.getLogger(__name__)

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
RFQ_LOG_RANGE = "RFQ Log!A:M"


def get_product_sheet_range() -> str:
    return os.environ.get("PRODUCT_SHEET_RANGE", "").strip() or "Products!A:Z"


def get_sheet_id() -> str:
    """Return the configured spreadsheet id; empty string disables logging."""
    return os.environ.get("GOOGLE_SHEET_ID", "").strip()


class GoogleSheetsClient:
    """Append and read spreadsheet values with a service account."""

    def __init__(
        self,
        client_email: str | None = None,
        private_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_email = client_email or os.environ.get("GOOGLE_CLIENT_EMAIL", "").strip()
        raw_key = private_key or os.environ.get("GOOGLE_PRIVATE_KEY", "")
        self._private_key = raw_key.replace("\\n", "\n")
        self._transport = transport
        self._credentials = None

    @property
    def is_configured(self) -> bool:
        return bool(self._client_email and self._private_key)

    def _refresh_token(self) -> str:
        if self._credentials is None:
            self._credentials = service_account.Credentials.from_service_account_info(
                {
                    "client_email": self._client_email,
                    "private_key": self._private_key,
                    "token_uri": "https://oauth2.googleapis.com/token",
                },
                scopes=[SHEETS_SCOPE],
            )
        if not self._credentials.valid:
            self._credentials.refresh(GoogleAuthRequest())
        return self._credentials.token

    async def _headers(self) -> dict[str, str]:
        if not self.is_configured:
            raise SheetsError("Google Sheets credentials are not configured.")
        token = await asyncio.to_thread(self._refresh_token)
        return {"Authorization": f"Bearer {token}"}

    async def append(self, sheet_id: str, range_: str, values: list[Any]) -> None:
        """Append one row of values to ``range_``."""
        await self.append_rows(sheet_id, range_, [values])

    async def append_rows(self, sheet_id: str, range_: str, rows: list[list[Any]]) -> None:
        """Append rows to ``range_``.

        Raises:
            SheetsError: On credential or API failure.
        """
        url = f"{SHEETS_API_BASE}/{sheet_id}/values/{quote(range_)}:append"
        headers = await self._headers()
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            resp = await client.post(
                url,
                params={"valueInputOption": "USER_ENTERED"},
                json={"values": rows},
                headers=headers,
            )
        if resp.status_code >= 400:
            raise SheetsError(f"Sheets append failed ({resp.status_code}): {resp.text}")
        logger.info("Appended %d rows to sheet %s range %s", len(rows), sheet_id, range_)
