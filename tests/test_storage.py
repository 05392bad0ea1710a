"""Tests for the expense store implementations."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from chamber.models.audit import AuditEvent, AuditEventType
from chamber.models.capture import (
    ExpenseCategory,
    ExtractedExpense,
    FinalizedExpenseRecord,
    PaymentMethod,
    PendingCapture,
)
from chamber.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsExpenseStore,
    InMemoryExpenseStore,
    StorageError,
)
from chamber.services.storage.google_sheets import (
    EXPENSE_COLUMNS,
    LINK_COLUMNS,
    LINKING_CODE_COLUMNS,
)

IST = ZoneInfo("Asia/Kolkata")


def _record(amount: str, occurred_at: datetime, user_id: str = "user-1") -> FinalizedExpenseRecord:
    capture = PendingCapture.from_extraction(
        ExtractedExpense(
            amount=Decimal(amount), category=ExpenseCategory.FOOD, description="Lunch"
        ),
        user_id=user_id,
        created_at=occurred_at,
        ttl=timedelta(minutes=5),
    )
    return FinalizedExpenseRecord.from_capture(
        capture, PaymentMethod.CASH, occurred_at=occurred_at
    )


class FakeWorksheet:
    """Just enough of gspread.Worksheet."""

    def __init__(self, header):
        self.rows = [list(header)]
        self.fail = False

    def get_all_values(self):
        if self.fail:
            raise RuntimeError("quota exceeded")
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        if self.fail:
            raise RuntimeError("quota exceeded")
        self.rows.append([str(value) for value in row])

    def update_cell(self, row, col, value):
        self.rows[row - 1][col - 1] = str(value)


class FakeSheetsClient:
    def __init__(self):
        self.expenses = FakeWorksheet(EXPENSE_COLUMNS)
        self.links = FakeWorksheet(LINK_COLUMNS)
        self.codes = FakeWorksheet(LINKING_CODE_COLUMNS)
        self.audit = FakeWorksheet(["event_id"])

    def get_expenses_sheet(self):
        return self.expenses

    def get_links_sheet(self):
        return self.links

    def get_linking_codes_sheet(self):
        return self.codes

    def get_audit_sheet(self):
        return self.audit


class TestInMemoryExpenseStore:
    """Tests for the dict-backed store."""

    @pytest.mark.asyncio
    async def test_duplicate_uses_local_calendar_day(self):
        """Test 23:00 UTC on the 13th is the 14th in India."""
        store = InMemoryExpenseStore(tz=IST)
        await store.create_expense(
            _record("450.00", datetime(2026, 3, 13, 23, 0, tzinfo=timezone.utc))
        )
        assert await store.expense_exists("user-1", Decimal("450.00"), datetime(2026, 3, 14).date())
        assert not await store.expense_exists("user-1", Decimal("450.00"), datetime(2026, 3, 13).date())

    @pytest.mark.asyncio
    async def test_duplicate_is_per_user(self):
        store = InMemoryExpenseStore()
        moment = datetime(2026, 3, 14, 6, 0, tzinfo=timezone.utc)
        await store.create_expense(_record("450.00", moment, user_id="someone-else"))
        assert not await store.expense_exists("user-1", Decimal("450.00"), moment.date())

    @pytest.mark.asyncio
    async def test_linking_code_single_use(self):
        store = InMemoryExpenseStore()
        store.add_linking_code("ABC", "user-9", datetime.now(timezone.utc) + timedelta(hours=1))
        assert await store.redeem_linking_code("ABC", 555) == "user-9"
        assert await store.find_user_by_chat_id(555) == "user-9"
        assert await store.redeem_linking_code("ABC", 556) is None

    @pytest.mark.asyncio
    async def test_expired_linking_code(self):
        store = InMemoryExpenseStore()
        store.add_linking_code("OLD", "user-9", datetime.now(timezone.utc) - timedelta(minutes=1))
        assert await store.redeem_linking_code("OLD", 555) is None
        assert await store.find_user_by_chat_id(555) is None


class TestGoogleSheetsExpenseStore:
    """Tests for the Sheets store with a fake gspread client."""

    @pytest.fixture
    def sheets(self):
        return FakeSheetsClient()

    @pytest.fixture
    def store(self, sheets):
        return GoogleSheetsExpenseStore(sheets, tz=IST)

    @pytest.mark.asyncio
    async def test_create_and_detect_duplicate(self, store, sheets):
        """Test a saved row is found by the duplicate check."""
        moment = datetime(2026, 3, 14, 6, 0, tzinfo=timezone.utc)
        record = _record("450.00", moment)
        await store.create_expense(record)

        row = sheets.expenses.rows[1]
        assert row[0] == str(record.id)
        assert row[2] == "450.00"
        assert row[6] == "Cash"
        assert row[8] == "TELEGRAM"
        assert await store.expense_exists("user-1", Decimal("450.00"), moment.date())
        assert not await store.expense_exists("user-1", Decimal("451.00"), moment.date())

    @pytest.mark.asyncio
    async def test_malformed_rows_are_skipped(self, store, sheets):
        sheets.expenses.rows.append(["x", "user-1", "not-a-number"] + [""] * 8)
        assert not await store.expense_exists(
            "user-1", Decimal("1.00"), datetime(2026, 3, 14).date()
        )

    @pytest.mark.asyncio
    async def test_find_user_by_chat_id(self, store, sheets):
        sheets.links.rows.append(["100", "user-1", "2026-03-01T00:00:00+00:00"])
        assert await store.find_user_by_chat_id(100) == "user-1"
        assert await store.find_user_by_chat_id(200) is None

    @pytest.mark.asyncio
    async def test_redeem_linking_code(self, store, sheets):
        """Test the code is marked used and the chat linked."""
        expires = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
        sheets.codes.rows.append(["ABC", "user-1", expires, "False"])

        assert await store.redeem_linking_code("ABC", 100) == "user-1"
        assert sheets.codes.rows[1][3] == "True"
        assert sheets.links.rows[1][:2] == ["100", "user-1"]
        assert await store.redeem_linking_code("ABC", 100) is None

    @pytest.mark.asyncio
    async def test_relink_moves_chat(self, store, sheets):
        """Test a user linking a new chat replaces the old link."""
        sheets.links.rows.append(["100", "user-1", "2026-03-01T00:00:00+00:00"])
        expires = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
        sheets.codes.rows.append(["NEW", "user-1", expires, "False"])

        await store.redeem_linking_code("NEW", 300)
        assert len(sheets.links.rows) == 2
        assert sheets.links.rows[1][0] == "300"

    @pytest.mark.asyncio
    async def test_sheet_failure_is_storage_error(self, store, sheets):
        sheets.expenses.fail = True
        with pytest.raises(StorageError):
            await store.create_expense(
                _record("10.00", datetime(2026, 3, 14, tzinfo=timezone.utc))
            )


class TestGoogleSheetsAuditStorage:
    """Tests for the append-only audit sheet."""

    @pytest.mark.asyncio
    async def test_append(self):
        sheets = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(sheets)
        event = AuditEvent(event_type=AuditEventType.EXPENSE_SAVED, description="saved")
        assert await storage.append_event(event) is True
        assert sheets.audit.rows[1][2] == "expense_saved"

    @pytest.mark.asyncio
    async def test_failure_returns_false(self):
        sheets = FakeSheetsClient()
        sheets.audit.fail = True
        storage = GoogleSheetsAuditStorage(sheets)
        event = AuditEvent(event_type=AuditEventType.EXPENSE_SAVED, description="saved")
        assert await storage.append_event(event) is False
