"""
Dialogue Controller for the Chat Capture Gateway

This module ties together all the components and defines the
per-update state machine for a Telegram chat:

    Idle ──(text/photo/PDF, extraction ok)──▶ AwaitingConfirmation
    AwaitingConfirmation ──(payment method)──▶ Idle   (expense saved)
    AwaitingConfirmation ──(cancel)──────────▶ Idle
    AwaitingConfirmation ──(new text)────────▶ Idle → re-extract (correction)
    AwaitingConfirmation ──(TTL passes)──────▶ Idle   (noticed lazily)

DESIGN DECISION: The controller enforces the boundaries:
- Nothing is saved until the user picks a payment method
- One pending capture per chat; a new one replaces the old
- Duplicates are flagged, never blocked
- Every step is audited under one correlation id per update

handle_update never raises. Whatever happens, the webhook can
acknowledge the delivery.
"""

import html
from datetime import datetime, timedelta, tzinfo
from typing import Awaitable, Callable, Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog

from chamber.agents import ExpenseExtractionAgent
from chamber.audit import AuditLogger, create_correlation_id
from chamber.config import get_settings
from chamber.errors import (
    CaptureExpiredError,
    TransientIOError,
    UnlinkedChatError,
    UserInputError,
)
from chamber.extraction import ExtractionAdapter
from chamber.extraction.adapter import COULD_NOT_EXTRACT_PDF_TEXT
from chamber.models.audit import AuditEvent, AuditEventBuilder
from chamber.models.capture import (
    CANCEL_CALLBACK_DATA,
    PAYMENT_CALLBACK_PREFIX,
    ExtractedExpense,
    ExtractionFailure,
    FailureKind,
    FinalizedExpenseRecord,
    PaymentMethod,
    PendingAttachment,
    PendingCapture,
)
from chamber.models.updates import (
    CallbackUpdate,
    DocumentUpdate,
    InboundUpdate,
    PhotoUpdate,
    TextUpdate,
)
from chamber.services.media import (
    CloudinaryBlobStorage,
    MediaDownloadError,
    MediaResolver,
)
from chamber.services.storage import (
    BlobStorageInterface,
    ExpenseStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStore,
    InMemoryExpenseStore,
)
from chamber.services.telegram import InlineKeyboard, TelegramClient
from chamber.sessions import SessionStore

logger = structlog.get_logger(__name__)

PostCommitHook = Callable[[FinalizedExpenseRecord], Awaitable[None]]


# =============================================================================
# CHAT MESSAGES
# =============================================================================

MSG_NOT_LINKED = (
    "❌ Your Telegram account is not linked. "
    "Please link it from the Chamber dashboard first."
)
MSG_WELCOME = (
    "👋 Welcome to Chamber!\n\n"
    "To link your account, please generate a linking code from the Chamber "
    "dashboard and send:\n<code>/start YOUR_CODE</code>"
)
MSG_LINKED = (
    "✅ <b>Account linked successfully!</b>\n\n"
    "You can now send expenses like:\n"
    "• <code>Lunch 450</code>\n"
    "• <code>Uber 250</code>\n"
    "• Or send a receipt photo!"
)
MSG_LINK_FAILED = (
    "❌ Invalid or expired code. "
    "Please generate a new code from the Chamber dashboard."
)

MSG_PROCESSING = "🤖 Processing..."
MSG_CORRECTION = "🔄 Processing your correction..."
MSG_ANALYZING_RECEIPT = "🤖 Analyzing receipt..."
MSG_EXTRACTING_PDF = "📄 Extracting text from PDF..."
MSG_ANALYZING_INVOICE = "🤖 Analyzing invoice..."

MSG_TEXT_NOT_UNDERSTOOD = (
    "❓ Could not understand. Please try format: <code>Item Amount</code>\n"
    "Example: <code>Lunch 450</code>"
)
MSG_PHOTO_NOT_UNDERSTOOD = (
    "❓ Could not extract expense. Please try:\n"
    "• Adding a caption like: <code>Paid 290 to Sweets Shop</code>\n"
    "• Or type the expense manually"
)
MSG_PDF_NOT_UNDERSTOOD = (
    "❓ Could not parse expense. Please try:\n<code>Item name Amount</code>"
)
MSG_PDF_NO_TEXT = "❌ Could not extract text from PDF. Please send an image instead."
MSG_UNSUPPORTED_DOCUMENT = (
    "❌ Only PDF invoices are supported. Please send a PDF file or an image."
)
MSG_DOWNLOAD_FAILED = "❌ Could not download the file. Please send it again."
MSG_SERVICE_UNAVAILABLE = (
    "⚠️ Could not process this right now. "
    "Please try again in a moment or type the expense manually."
)
MSG_INTERNAL_ERROR = "⚠️ Something went wrong on our side. Please try again."

MSG_EXPIRED = "⏰ Expired. Please send the expense again."
MSG_CANCELLED = "❌ Cancelled. Send another expense or receipt."
MSG_SAVE_FAILED = "⚠️ Could not save the expense. Please tap a payment method again."

PAYMENT_KEYBOARD: InlineKeyboard = [
    [
        {"text": "🏦 PNB", "callback_data": PaymentMethod.PNB.callback_data},
        {"text": "🏦 SBI", "callback_data": PaymentMethod.SBI.callback_data},
    ],
    [
        {"text": "💵 Cash", "callback_data": PaymentMethod.CASH.callback_data},
        {"text": "💳 Credit", "callback_data": PaymentMethod.CREDIT.callback_data},
    ],
    [
        {"text": "❌ Cancel", "callback_data": CANCEL_CALLBACK_DATA},
    ],
]


class DialogueController:
    """
    Drives one chat through capture → confirmation → save.

    All collaborators are injected; the controller owns no global
    state. See create_app_components() for the production wiring.
    """

    def __init__(
        self,
        telegram: TelegramClient,
        expense_store: ExpenseStoreInterface,
        extraction: ExtractionAdapter,
        media: MediaResolver,
        sessions: SessionStore,
        audit_logger: Optional[AuditLogger] = None,
        post_commit_hooks: Sequence[PostCommitHook] = (),
        tz: Optional[tzinfo] = None,
        currency_symbol: Optional[str] = None,
    ):
        app_settings = None
        if tz is None or currency_symbol is None:
            app_settings = get_settings().app

        self._telegram = telegram
        self._store = expense_store
        self._extraction = extraction
        self._media = media
        self._sessions = sessions
        self._audit_logger = audit_logger or AuditLogger()
        self._hooks = list(post_commit_hooks)
        # Chats whose capture has been taken and is being saved
        self._committing: set[int] = set()
        self._tz = tz or ZoneInfo(app_settings.timezone)
        self._currency = currency_symbol or app_settings.currency_symbol

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def handle_update(self, update: InboundUpdate) -> None:
        """
        Process one inbound update to a single terminal outcome.

        Never raises.
        """
        correlation_id = create_correlation_id()
        log = logger.bind(
            chat_id=update.chat_id,
            update_id=update.update_id,
            kind=update.kind,
            correlation_id=str(correlation_id),
        )

        try:
            await self._audit(
                AuditEventBuilder.update_received(update.chat_id, update.kind, correlation_id)
            )
            if isinstance(update, CallbackUpdate):
                await self._handle_callback(update, correlation_id)
            elif isinstance(update, TextUpdate):
                await self._handle_text(update, correlation_id)
            elif isinstance(update, PhotoUpdate):
                await self._handle_photo(update, correlation_id)
            elif isinstance(update, DocumentUpdate):
                await self._handle_document(update, correlation_id)

        except UnlinkedChatError:
            await self._audit(AuditEventBuilder.chat_not_linked(update.chat_id, correlation_id))
            await self._reply_safely(update, MSG_NOT_LINKED)

        except UserInputError as e:
            text = str(e) if not e.hint else f"{e}\n{e.hint}"
            await self._reply_safely(update, f"❌ {text}")

        except MediaDownloadError as e:
            log.warning("media_download_failed", file_ref=e.file_ref)
            await self._audit_logger.log_external_service_error(
                service="telegram",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await self._reply_safely(update, MSG_DOWNLOAD_FAILED)

        except TransientIOError as e:
            log.warning("transient_failure", error=str(e), error_type=type(e).__name__)
            await self._audit_logger.log_external_service_error(
                service=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await self._reply_safely(update, MSG_SERVICE_UNAVAILABLE)

        except Exception as e:
            log.exception("update_failed")
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"chat_id": update.chat_id, "kind": update.kind},
                correlation_id=correlation_id,
            )
            await self._reply_safely(update, MSG_INTERNAL_ERROR)

    # -------------------------------------------------------------------------
    # Text
    # -------------------------------------------------------------------------

    async def _handle_text(self, update: TextUpdate, correlation_id: UUID) -> None:
        text = update.text.strip()
        chat_id = update.chat_id

        if text.startswith("/start"):
            code = text[len("/start"):].strip()
            if code:
                await self._link_account(chat_id, code, correlation_id)
            else:
                await self._telegram.send_message(chat_id, MSG_WELCOME)
            return
        if not text or text.startswith("/"):
            # Other commands are not ours
            return

        user_id = await self._require_user(chat_id)

        # A new message while a capture is pending is a correction
        if self._sessions.get(chat_id) is not None:
            self._sessions.remove(chat_id)
            await self._audit(AuditEventBuilder.capture_replaced(chat_id, correlation_id))
            await self._telegram.send_message(chat_id, MSG_CORRECTION)

        await self._telegram.send_message(chat_id, MSG_PROCESSING)
        result = await self._extraction.from_text(text)

        if not result.ok:
            await self._report_failure(chat_id, "text", result, correlation_id)
            return

        await self._stage_capture(chat_id, user_id, result.expense, None, "text", correlation_id)

    async def _link_account(self, chat_id: int, code: str, correlation_id: UUID) -> None:
        user_id = await self._store.redeem_linking_code(code, chat_id)
        if user_id is None:
            await self._audit(AuditEventBuilder.linking_failed(chat_id, correlation_id))
            await self._telegram.send_message(chat_id, MSG_LINK_FAILED)
            return

        await self._audit(AuditEventBuilder.account_linked(chat_id, user_id, correlation_id))
        await self._telegram.send_message(chat_id, MSG_LINKED)

    # -------------------------------------------------------------------------
    # Photo
    # -------------------------------------------------------------------------

    async def _handle_photo(self, update: PhotoUpdate, correlation_id: UUID) -> None:
        chat_id = update.chat_id
        user_id = await self._require_user(chat_id)

        await self._telegram.send_message(chat_id, MSG_ANALYZING_RECEIPT)
        data = await self._media.fetch_bytes(update.file_ref, update.file_size)
        attachment = self._media.prepare_attachment(data, user_id, kind="photo")

        result = await self._extraction.from_photo(data, update.caption)
        if not result.ok:
            await self._report_failure(chat_id, "photo", result, correlation_id)
            return

        await self._stage_capture(
            chat_id, user_id, result.expense, attachment, "photo", correlation_id
        )

    # -------------------------------------------------------------------------
    # Document
    # -------------------------------------------------------------------------

    async def _handle_document(self, update: DocumentUpdate, correlation_id: UUID) -> None:
        chat_id = update.chat_id
        user_id = await self._require_user(chat_id)

        if not self._extraction.is_supported_document(update.mime_type, update.file_name):
            await self._audit(
                AuditEventBuilder.document_rejected(
                    chat_id, update.mime_type, update.file_name, correlation_id
                )
            )
            await self._telegram.send_message(chat_id, MSG_UNSUPPORTED_DOCUMENT)
            return

        await self._telegram.send_message(chat_id, MSG_EXTRACTING_PDF)
        data = await self._media.fetch_bytes(update.file_ref, update.file_size)
        attachment = self._media.prepare_attachment(data, user_id, kind="pdf")

        await self._telegram.send_message(chat_id, MSG_ANALYZING_INVOICE)
        result = await self._extraction.from_document(data, update.caption)
        if not result.ok:
            await self._report_failure(chat_id, "pdf", result, correlation_id)
            return

        await self._stage_capture(
            chat_id, user_id, result.expense, attachment, "pdf", correlation_id
        )

    # -------------------------------------------------------------------------
    # Shared capture steps
    # -------------------------------------------------------------------------

    async def _require_user(self, chat_id: int) -> str:
        user_id = await self._store.find_user_by_chat_id(chat_id)
        if user_id is None:
            raise UnlinkedChatError(chat_id)
        return user_id

    async def _report_failure(
        self,
        chat_id: int,
        input_kind: str,
        failure: ExtractionFailure,
        correlation_id: UUID,
    ) -> None:
        await self._audit(
            AuditEventBuilder.extraction_failed(chat_id, input_kind, failure.reason, correlation_id)
        )

        if input_kind == "text":
            message = MSG_TEXT_NOT_UNDERSTOOD
        elif failure.kind == FailureKind.TRANSIENT_IO:
            message = MSG_SERVICE_UNAVAILABLE
        elif input_kind == "photo":
            message = MSG_PHOTO_NOT_UNDERSTOOD
        elif failure.reason == COULD_NOT_EXTRACT_PDF_TEXT:
            message = MSG_PDF_NO_TEXT
        else:
            message = MSG_PDF_NOT_UNDERSTOOD
        await self._telegram.send_message(chat_id, message)

    def _local_now(self) -> datetime:
        return self._sessions.now().astimezone(self._tz)

    async def _stage_capture(
        self,
        chat_id: int,
        user_id: str,
        expense: ExtractedExpense,
        attachment: Optional[PendingAttachment],
        input_kind: str,
        correlation_id: UUID,
    ) -> None:
        """extract → dedupe → put pending → prompt"""
        await self._audit(
            AuditEventBuilder.extraction_completed(
                chat_id, input_kind, expense.source.value, expense.confidence, correlation_id
            )
        )

        is_duplicate = await self._store.expense_exists(
            user_id, expense.amount, self._local_now().date()
        )

        capture = PendingCapture.from_extraction(
            expense,
            user_id=user_id,
            created_at=self._sessions.now(),
            ttl=self._sessions.ttl,
            attachment=attachment,
            is_duplicate=is_duplicate,
            correlation_id=correlation_id,
        )
        self._sessions.put(chat_id, capture)

        await self._audit(
            AuditEventBuilder.capture_pending(
                chat_id, capture.capture_id, str(capture.amount),
                attachment is not None, correlation_id,
            )
        )
        if is_duplicate:
            await self._audit(
                AuditEventBuilder.duplicate_flagged(chat_id, str(capture.amount), correlation_id)
            )

        await self._telegram.send_message(
            chat_id, self.format_prompt(capture), keyboard=PAYMENT_KEYBOARD
        )

    def _money(self, amount) -> str:
        return f"{self._currency}{amount:.2f}"

    def format_prompt(self, capture: PendingCapture) -> str:
        """The "select payment method" message for a pending capture."""
        lines = ["📋 <b>Select payment method:</b>", ""]
        if capture.merchant:
            lines.append(f"🏪 {html.escape(capture.merchant)}")
        lines.append(f"💰 {self._money(capture.amount)}")
        lines.append(f"📁 {capture.category.value}")
        lines.append(f"📝 {html.escape(capture.description)}")
        if capture.attachment is not None:
            if capture.attachment.kind == "pdf":
                lines.append("📄 PDF attached")
            else:
                lines.append("📎 Receipt attached")

        text = "\n".join(lines)
        if capture.is_duplicate:
            text += "\n\n⚠️ <b>Warning:</b> Duplicate amount today."
        return text

    # -------------------------------------------------------------------------
    # Callback buttons
    # -------------------------------------------------------------------------

    async def _handle_callback(self, update: CallbackUpdate, correlation_id: UUID) -> None:
        chat_id = update.chat_id

        # A tap that lands while an earlier tap is still saving
        if chat_id in self._committing:
            logger.info("commit_in_progress", chat_id=chat_id, data=update.data)
            await self._telegram.answer_callback_query(update.callback_id, "Already processing")
            return

        if update.data == CANCEL_CALLBACK_DATA:
            had_pending = self._sessions.remove(chat_id)
            await self._audit(
                AuditEventBuilder.capture_cancelled(chat_id, had_pending, correlation_id)
            )
            await self._telegram.edit_message_text(chat_id, update.message_id, MSG_CANCELLED)
            await self._telegram.answer_callback_query(update.callback_id, "Cancelled")
            return

        method = None
        if update.data.startswith(PAYMENT_CALLBACK_PREFIX):
            method = PaymentMethod.from_callback_token(
                update.data[len(PAYMENT_CALLBACK_PREFIX):]
            )
        if method is None:
            logger.info("unknown_callback_ignored", chat_id=chat_id, data=update.data)
            await self._telegram.answer_callback_query(update.callback_id)
            return

        try:
            await self._commit(update, method, correlation_id)
        except CaptureExpiredError:
            await self._audit(AuditEventBuilder.capture_expired(chat_id, correlation_id))
            await self._telegram.edit_message_text(chat_id, update.message_id, MSG_EXPIRED)
            await self._telegram.answer_callback_query(update.callback_id, "Expired")

    async def _commit(
        self,
        update: CallbackUpdate,
        method: PaymentMethod,
        correlation_id: UUID,
    ) -> None:
        """
        Save the pending capture with the chosen payment method.

        Raises:
            CaptureExpiredError: If there is no live capture for the chat
        """
        chat_id = update.chat_id
        capture = self._sessions.pop(chat_id)
        if capture is None:
            raise CaptureExpiredError(f"No pending capture for chat {chat_id}")

        self._committing.add(chat_id)
        try:
            await self._save_capture(update, capture, method, correlation_id)
        finally:
            self._committing.discard(chat_id)

    async def _save_capture(
        self,
        update: CallbackUpdate,
        capture: PendingCapture,
        method: PaymentMethod,
        correlation_id: UUID,
    ) -> None:
        chat_id = update.chat_id
        await self._audit(
            AuditEventBuilder.capture_confirmed(capture.capture_id, method.value, correlation_id)
        )

        receipt_key = None
        if capture.attachment is not None:
            receipt_key = await self._media.persist(capture.attachment, correlation_id)

        record = FinalizedExpenseRecord.from_capture(
            capture,
            payment_method=method,
            occurred_at=self._sessions.now(),
            receipt_key=receipt_key,
        )

        try:
            saved = await self._store.create_expense(record)
        except TransientIOError as e:
            # Give the capture back so the user can tap again
            self._sessions.restore(chat_id, capture)
            logger.warning("expense_save_failed", chat_id=chat_id, error=str(e))
            await self._audit_logger.log_external_service_error(
                service="expense_store",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await self._telegram.answer_callback_query(update.callback_id, "Not saved")
            await self._telegram.send_message(chat_id, MSG_SAVE_FAILED)
            return

        # The expense is stored from here on; nothing below may report failure
        try:
            await self._audit(
                AuditEventBuilder.expense_saved(
                    saved.id, str(saved.amount), saved.payment_method,
                    saved.receipt_key is not None, correlation_id,
                )
            )
            await self._confirm_saved(update, saved)
        finally:
            await self._run_hooks(saved)

    async def _confirm_saved(
        self,
        update: CallbackUpdate,
        saved: FinalizedExpenseRecord,
    ) -> None:
        """Edit the prompt to the success message; a failure is only logged."""
        try:
            await self._telegram.edit_message_text(
                update.chat_id,
                update.message_id,
                (
                    f"✅ <b>Saved!</b>\n\n"
                    f"💰 {self._money(saved.amount)}\n"
                    f"📁 {saved.category.value}\n"
                    f"💳 {saved.payment_method}"
                ),
            )
        except Exception as e:
            logger.warning(
                "saved_reply_failed",
                chat_id=update.chat_id,
                expense_id=str(saved.id),
                error=str(e),
            )
        try:
            await self._telegram.answer_callback_query(update.callback_id, "Saved!")
        except Exception as e:
            logger.warning("saved_answer_failed", chat_id=update.chat_id, error=str(e))

    async def _run_hooks(self, record: FinalizedExpenseRecord) -> None:
        for hook in self._hooks:
            try:
                await hook(record)
            except Exception as e:
                logger.warning(
                    "post_commit_hook_failed",
                    hook=getattr(hook, "__name__", repr(hook)),
                    expense_id=str(record.id),
                    error=str(e),
                )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._telegram.aclose()

    async def _audit(self, event: AuditEvent) -> None:
        await self._audit_logger.log(event)

    async def _reply_safely(self, update: InboundUpdate, text: str) -> None:
        """Best-effort reply from an error path; a failure is only logged."""
        try:
            if isinstance(update, CallbackUpdate):
                await self._telegram.answer_callback_query(update.callback_id)
            await self._telegram.send_message(update.chat_id, text)
        except Exception as e:
            logger.warning("error_reply_failed", chat_id=update.chat_id, error=str(e))


def create_app_components(
    telegram: Optional[TelegramClient] = None,
    post_commit_hooks: Sequence[PostCommitHook] = (),
) -> DialogueController:
    """
    Factory function to wire the production dialogue controller.

    Google Sheets and Cloudinary are optional: when they are not
    configured the controller runs on in-memory storage (local
    development), and says so in the log.
    """
    settings = get_settings()
    app_settings = settings.app
    tz = ZoneInfo(app_settings.timezone)

    telegram = telegram or TelegramClient(settings.telegram)

    expense_store: ExpenseStoreInterface
    audit_logger: AuditLogger
    try:
        sheets_client = GoogleSheetsClient()
        expense_store = GoogleSheetsExpenseStore(sheets_client, tz=tz)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    except Exception as e:
        # Storage not configured - continue without it
        logger.warning("sheets_not_configured_using_memory", error=str(e))
        expense_store = InMemoryExpenseStore(tz=tz)
        audit_logger = AuditLogger()  # Local-only logging

    blob_storage: Optional[BlobStorageInterface]
    try:
        blob_storage = CloudinaryBlobStorage()
    except Exception as e:
        logger.warning("cloudinary_not_configured_receipts_disabled", error=str(e))
        blob_storage = None

    sessions = SessionStore(ttl=timedelta(seconds=app_settings.pending_capture_ttl_seconds))
    media = MediaResolver(
        telegram,
        blob_storage,
        max_bytes=app_settings.max_download_size_bytes,
        audit_logger=audit_logger,
        clock=sessions.now,
    )
    extraction = ExtractionAdapter(
        ExpenseExtractionAgent(),
        pdf_char_limit=app_settings.pdf_text_char_limit,
    )

    return DialogueController(
        telegram=telegram,
        expense_store=expense_store,
        extraction=extraction,
        media=media,
        sessions=sessions,
        audit_logger=audit_logger,
        post_commit_hooks=post_commit_hooks,
        tz=tz,
        currency_symbol=app_settings.currency_symbol,
    )
