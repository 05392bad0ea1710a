"""Tests for the extraction adapter and the AI extraction agent."""

from decimal import Decimal
from io import BytesIO
from types import SimpleNamespace

import pytest
from pypdf import PdfWriter

from chamber.agents import ExpenseExtractionAgent, ExtractionServiceError, parse_ai_response
from chamber.extraction import ExtractionAdapter
from chamber.extraction import adapter as adapter_module
from chamber.models.capture import ExpenseCategory, ExtractionSource, FailureKind
from chamber.services.ocr import NoTextFoundError, OCRError

from tests.conftest import ai_success


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.reply)


class FakeOCR:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error

    async def read_text(self, image_bytes):
        if self.error:
            raise self.error
        return self.text


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


@pytest.fixture
def adapter(agent, validator):
    return ExtractionAdapter(agent, validator=validator, pdf_char_limit=2000)


class TestFromText:
    """Tests for the plain text path."""

    @pytest.mark.asyncio
    async def test_ai_success_is_returned(self, adapter, agent):
        """Test the AI result wins when it succeeds."""
        agent.text_results["Lunch 450"] = ai_success("450", "Lunch", ExpenseCategory.FOOD)
        result = await adapter.from_text("Lunch 450")
        assert result.ok
        assert result.expense.category == ExpenseCategory.FOOD
        assert result.expense.source == ExtractionSource.AI

    @pytest.mark.asyncio
    async def test_fallback_when_ai_fails(self, adapter, agent):
        """Test "Lunch 450" with the AI down."""
        result = await adapter.from_text("Lunch 450")
        assert result.ok
        assert result.expense.amount == Decimal("450.00")
        assert result.expense.description == "Lunch"
        assert result.expense.category == ExpenseCategory.GENERAL
        assert result.expense.source == ExtractionSource.FALLBACK
        assert agent.text_calls == ["Lunch 450"]

    @pytest.mark.asyncio
    async def test_no_number_anywhere(self, adapter):
        """Test text the fallback cannot parse either."""
        result = await adapter.from_text("hello there")
        assert not result.ok
        assert result.reason == "could not understand"
        assert result.kind == FailureKind.USER_INPUT

    @pytest.mark.asyncio
    async def test_fallback_rejects_zero(self, adapter):
        """Test a zero amount is not accepted by the fallback."""
        result = await adapter.from_text("Free sample 0")
        assert not result.ok


class TestFromPhoto:
    """Tests for the photo path."""

    @pytest.mark.asyncio
    async def test_useful_caption_skips_ocr(self, adapter, agent, jpeg_bytes):
        """Test "Paid 290 to Sweets Shop" bypasses OCR."""
        agent.text_results["User sent a payment screenshot"] = ai_success(
            "290", "Sweets", ExpenseCategory.FOOD, merchant="Sweets Shop"
        )
        result = await adapter.from_photo(jpeg_bytes, "Paid 290 to Sweets Shop")
        assert result.ok
        assert result.expense.merchant == "Sweets Shop"
        assert agent.image_calls == []
        assert '"Paid 290 to Sweets Shop"' in agent.text_calls[0]

    @pytest.mark.asyncio
    async def test_unhelpful_caption_runs_ocr(self, adapter, agent, jpeg_bytes):
        """Test "nice place!" falls through to OCR."""
        agent.image_result = ai_success("120", "Snacks")
        result = await adapter.from_photo(jpeg_bytes, "nice place!")
        assert result.ok
        assert agent.image_calls == [jpeg_bytes]
        assert agent.text_calls == []

    @pytest.mark.asyncio
    async def test_short_caption_runs_ocr(self, adapter, agent, jpeg_bytes):
        """Test captions of five characters or fewer are ignored."""
        await adapter.from_photo(jpeg_bytes, "45 ok")
        assert agent.image_calls == [jpeg_bytes]

    @pytest.mark.asyncio
    async def test_no_caption_runs_ocr(self, adapter, agent, jpeg_bytes):
        """Test photos without a caption."""
        await adapter.from_photo(jpeg_bytes, None)
        assert len(agent.image_calls) == 1


class TestFromDocument:
    """Tests for the PDF path."""

    def test_supported_documents(self):
        """Test only PDFs are accepted."""
        assert ExtractionAdapter.is_supported_document("application/pdf", None)
        assert ExtractionAdapter.is_supported_document(None, "Invoice.PDF")
        assert not ExtractionAdapter.is_supported_document(
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "bill.docx",
        )
        assert not ExtractionAdapter.is_supported_document(None, None)

    @pytest.mark.asyncio
    async def test_caption_preferred(self, adapter, agent):
        """Test a useful caption is used instead of the PDF text."""
        agent.text_results["User sent a PDF invoice"] = ai_success("1499", "Internet")
        result = await adapter.from_document(b"%PDF-not-read", "Airtel bill 1499")
        assert result.ok
        assert '"Airtel bill 1499"' in agent.text_calls[0]

    @pytest.mark.asyncio
    async def test_pdf_text_is_truncated(self, adapter, agent, monkeypatch):
        """Test only the first 2000 characters are sent."""
        monkeypatch.setattr(adapter_module, "_read_pdf_text", lambda data: "x" * 5000)
        agent.text_results["Extract expense details from this invoice text"] = ai_success(
            "999", "Invoice"
        )
        result = await adapter.from_document(b"%PDF", None)
        assert result.ok
        prompt = agent.text_calls[0]
        framing, body = prompt.split("\n\n", 1)
        assert framing == "Extract expense details from this invoice text:"
        assert body == "x" * 2000

    @pytest.mark.asyncio
    async def test_unreadable_pdf(self, adapter, agent):
        """Test bytes that are not a PDF."""
        result = await adapter.from_document(b"definitely not a pdf", None)
        assert not result.ok
        assert result.reason == "could not extract text"
        assert agent.text_calls == []

    @pytest.mark.asyncio
    async def test_pdf_without_text(self, adapter, agent):
        """Test a scanned (image only) PDF."""
        result = await adapter.from_document(_blank_pdf(), None)
        assert not result.ok
        assert result.reason == "could not extract text"


class TestParseAIResponse:
    """Tests for pulling JSON out of a model reply."""

    def test_plain_json(self):
        assert parse_ai_response('{"amount": 450}') == {"amount": 450}

    def test_json_in_code_fence(self):
        """Test prose and fences around the object."""
        reply = 'Sure!\n```json\n{"amount": 450, "category": "Food"}\n```'
        assert parse_ai_response(reply)["category"] == "Food"

    def test_no_json(self):
        with pytest.raises(ExtractionServiceError):
            parse_ai_response("I cannot help with that")

    def test_broken_json(self):
        with pytest.raises(ExtractionServiceError):
            parse_ai_response('{"amount": 450,')


class TestExpenseExtractionAgent:
    """Tests for the Gemini-backed agent with a fake model."""

    @pytest.mark.asyncio
    async def test_extracts_expense(self, validator):
        """Test a well formed reply."""
        model = FakeModel(
            '{"amount": 250, "category": "Travel", "description": "Uber to airport", '
            '"merchant": "Uber", "confidence": 0.9}'
        )
        agent = ExpenseExtractionAgent(model=model, validator=validator)
        result = await agent.extract_from_text("Uber to airport 250")
        assert result.ok
        assert result.expense.amount == Decimal("250.00")
        assert result.expense.category == ExpenseCategory.TRAVEL
        assert 'Parse this expense: "Uber to airport 250"' in model.prompts[0]
        assert "Subscription" in model.prompts[0]

    @pytest.mark.asyncio
    async def test_model_declines(self, validator):
        """Test an {"error": ...} reply."""
        agent = ExpenseExtractionAgent(
            model=FakeModel('{"error": "no amount found"}'), validator=validator
        )
        result = await agent.extract_from_text("hello")
        assert not result.ok
        assert result.reason == "no amount found"
        assert result.kind == FailureKind.USER_INPUT

    @pytest.mark.asyncio
    async def test_transport_failure(self, validator):
        """Test the AI being unreachable."""
        agent = ExpenseExtractionAgent(
            model=FakeModel(error=RuntimeError("503")), validator=validator
        )
        result = await agent.extract_from_text("Lunch 450")
        assert not result.ok
        assert result.kind == FailureKind.TRANSIENT_IO

    @pytest.mark.asyncio
    async def test_image_goes_through_ocr(self, validator, jpeg_bytes):
        """Test OCR text is framed as a payment screenshot."""
        model = FakeModel('{"amount": 290, "category": "Food", "description": "Sweets"}')
        agent = ExpenseExtractionAgent(
            model=model,
            ocr_service=FakeOCR("Paid to: Sweets Shop\nTotal: =290"),
            validator=validator,
        )
        result = await agent.extract_from_image(jpeg_bytes)
        assert result.ok
        assert "UPI/payment screenshot OCR text" in model.prompts[0]
        assert "Total: =290" in model.prompts[0]

    @pytest.mark.asyncio
    async def test_image_without_text(self, validator, jpeg_bytes):
        """Test an image OCR cannot read."""
        model = FakeModel("{}")
        agent = ExpenseExtractionAgent(
            model=model,
            ocr_service=FakeOCR(error=NoTextFoundError("No text found in image")),
            validator=validator,
        )
        result = await agent.extract_from_image(jpeg_bytes)
        assert not result.ok
        assert result.kind == FailureKind.USER_INPUT
        assert model.prompts == []

    @pytest.mark.asyncio
    async def test_ocr_service_down(self, validator, jpeg_bytes):
        """Test Mindee being unreachable."""
        agent = ExpenseExtractionAgent(
            model=FakeModel("{}"),
            ocr_service=FakeOCR(error=OCRError("timeout")),
            validator=validator,
        )
        result = await agent.extract_from_image(jpeg_bytes)
        assert not result.ok
        assert result.kind == FailureKind.TRANSIENT_IO
