"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the default expense store because:
1. The user can see every bot-captured expense directly in Sheets
2. No database setup required for a single household
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for personal use)
- No transactions (each write is a single append)
- Limited query capabilities (we filter in Python)

gspread is synchronous, so every sheet call runs in a worker thread
to keep the webhook's event loop free.
"""

import asyncio
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from chamber.config import get_settings
from chamber.models.audit import AuditEvent
from chamber.models.capture import FinalizedExpenseRecord
from chamber.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStoreInterface,
    StorageConnectionError,
    StorageError,
)

logger = structlog.get_logger(__name__)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "amount",
    "category",
    "description",
    "merchant",
    "payment_method",
    "receipt_key",
    "source",
    "occurred_at",
    "created_at",
]

# Column mappings for TelegramLinks sheet
LINK_COLUMNS = [
    "chat_id",
    "user_id",
    "linked_at",
]

# Column mappings for LinkingCodes sheet
LINKING_CODE_COLUMNS = [
    "code",
    "user_id",
    "expires_at",
    "used",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS
        )

    def get_links_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.links_sheet_name, LINK_COLUMNS, rows=100
        )

    def get_linking_codes_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.linking_codes_sheet_name, LINKING_CODE_COLUMNS, rows=100
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def expense_to_row(record: FinalizedExpenseRecord) -> list:
    """Convert a FinalizedExpenseRecord to a spreadsheet row."""
    return [
        str(record.id),
        record.user_id,
        str(record.amount),
        record.category.value,
        record.description,
        record.merchant or "",
        record.payment_method,
        record.receipt_key or "",
        record.source.value,
        record.occurred_at.isoformat(),
        record.created_at.isoformat(),
    ]


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class GoogleSheetsExpenseStore(ExpenseStoreInterface):
    """
    Google Sheets implementation of the expense store.

    Expenses, chat links and linking codes each live in their own
    worksheet, one entity per row.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        tz: tzinfo = timezone.utc,
    ):
        self._client = client or GoogleSheetsClient()
        self._tz = tz

    async def find_user_by_chat_id(self, chat_id: int) -> Optional[str]:
        try:
            sheet = await asyncio.to_thread(self._client.get_links_sheet)
            all_rows = await asyncio.to_thread(sheet.get_all_values)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to look up chat link: {e}")

        for row in all_rows[1:]:
            if len(row) >= 2 and row[0] == str(chat_id) and row[1]:
                return row[1]
        return None

    async def expense_exists(
        self,
        user_id: str,
        amount: Decimal,
        on_date: date,
    ) -> bool:
        try:
            sheet = await asyncio.to_thread(self._client.get_expenses_sheet)
            all_rows = await asyncio.to_thread(sheet.get_all_values)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read expenses: {e}")

        for row in all_rows[1:]:
            if len(row) < 10 or row[1] != user_id:
                continue
            try:
                row_amount = Decimal(row[2])
            except InvalidOperation:
                continue  # Skip malformed rows
            if row_amount != amount:
                continue
            occurred_at = _parse_timestamp(row[9])
            if occurred_at and occurred_at.astimezone(self._tz).date() == on_date:
                return True
        return False

    async def create_expense(
        self,
        record: FinalizedExpenseRecord,
    ) -> FinalizedExpenseRecord:
        try:
            sheet = await asyncio.to_thread(self._client.get_expenses_sheet)
            await asyncio.to_thread(
                sheet.append_row, expense_to_row(record), value_input_option="RAW"
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")
        return record

    async def redeem_linking_code(
        self,
        code: str,
        chat_id: int,
    ) -> Optional[str]:
        try:
            codes_sheet = await asyncio.to_thread(self._client.get_linking_codes_sheet)
            all_rows = await asyncio.to_thread(codes_sheet.get_all_values)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read linking codes: {e}")

        now = datetime.now(timezone.utc)
        # Row 1 is the header
        for idx, row in enumerate(all_rows[1:], start=2):
            if len(row) < 4 or row[0] != code:
                continue
            expires_at = _parse_timestamp(row[2])
            if row[3].lower() == "true" or expires_at is None or expires_at <= now:
                return None

            user_id = row[1]
            try:
                await asyncio.to_thread(codes_sheet.update_cell, idx, 4, "True")
                await asyncio.to_thread(self._link_chat, chat_id, user_id)
            except Exception as e:
                raise StorageError(f"Failed to link chat: {e}")
            return user_id

        return None

    def _link_chat(self, chat_id: int, user_id: str) -> None:
        """Upsert the chat → user row (sync, runs in a worker thread)."""
        sheet = self._client.get_links_sheet()
        all_rows = sheet.get_all_values()
        linked_at = datetime.now(timezone.utc).isoformat()
        for idx, row in enumerate(all_rows[1:], start=2):
            if len(row) >= 2 and row[1] == user_id:
                sheet.update_cell(idx, 1, str(chat_id))
                sheet.update_cell(idx, 3, linked_at)
                return
        sheet.append_row([str(chat_id), user_id, linked_at], value_input_option="RAW")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = await asyncio.to_thread(self._client.get_audit_sheet)
            await asyncio.to_thread(
                sheet.append_row, event.to_sheets_row(), value_input_option="RAW"
            )
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_sheet_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False
