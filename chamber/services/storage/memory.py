"""
In-memory storage

Used when Google Sheets / Cloudinary are not configured (local
development) and by the test suite. Nothing survives a restart.
"""

from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from typing import Optional

from chamber.models.capture import FinalizedExpenseRecord
from chamber.services.storage.interface import (
    BlobStorageInterface,
    ExpenseStoreInterface,
    NotFoundError,
)


class InMemoryExpenseStore(ExpenseStoreInterface):
    """
    Dict-backed expense store.

    `tz` decides which calendar day an expense falls on for the
    duplicate check.
    """

    def __init__(self, tz: tzinfo = timezone.utc):
        self._tz = tz
        self._links: dict[int, str] = {}
        self._codes: dict[str, dict] = {}
        self._expenses: list[FinalizedExpenseRecord] = []

    # -- seeding helpers -----------------------------------------------------

    def link_chat(self, chat_id: int, user_id: str) -> None:
        self._links[chat_id] = user_id

    def add_linking_code(self, code: str, user_id: str, expires_at: datetime) -> None:
        self._codes[code] = {"user_id": user_id, "expires_at": expires_at, "used": False}

    def list_expenses(self, user_id: Optional[str] = None) -> list[FinalizedExpenseRecord]:
        if user_id is None:
            return list(self._expenses)
        return [e for e in self._expenses if e.user_id == user_id]

    # -- ExpenseStoreInterface -----------------------------------------------

    async def find_user_by_chat_id(self, chat_id: int) -> Optional[str]:
        return self._links.get(chat_id)

    async def expense_exists(
        self,
        user_id: str,
        amount: Decimal,
        on_date: date,
    ) -> bool:
        for expense in self._expenses:
            if expense.user_id != user_id or expense.amount != amount:
                continue
            if _local_date(expense.occurred_at, self._tz) == on_date:
                return True
        return False

    async def create_expense(
        self,
        record: FinalizedExpenseRecord,
    ) -> FinalizedExpenseRecord:
        self._expenses.append(record)
        return record

    async def redeem_linking_code(
        self,
        code: str,
        chat_id: int,
    ) -> Optional[str]:
        entry = self._codes.get(code)
        if entry is None or entry["used"]:
            return None
        if entry["expires_at"] <= datetime.now(timezone.utc):
            return None

        entry["used"] = True
        self._links[chat_id] = entry["user_id"]
        return entry["user_id"]


class InMemoryBlobStorage(BlobStorageInterface):
    """Dict-backed blob storage."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = (data, content_type)
        return key

    async def get(self, key: str) -> bytes:
        try:
            return self.objects[key][0]
        except KeyError:
            raise NotFoundError(f"Object not found: {key}")


def _local_date(moment: datetime, tz: tzinfo) -> date:
    """Calendar date of `moment` in `tz` (naive datetimes are UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()
