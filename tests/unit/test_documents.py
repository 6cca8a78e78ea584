"""Tests for regulation PDF download and text helpers."""

import zlib
from unittest.mock import MagicMock, patch

import httpx
import pytest
from pypdf.errors import PdfReadError

from zonare.retrieval.documents import download_pdf_text, extract_pdf_text, is_valid_text


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _reader(*page_texts):
    pages = []
    for text in page_texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)
    reader = MagicMock()
    reader.pages = pages
    return reader


class TestExtractPdfText:
    def test_joins_pages_and_skips_missing_text(self):
        with patch("zonare.retrieval.documents.PdfReader", return_value=_reader("Pagina 1", None, "Pagina 3")):
            assert extract_pdf_text(b"%PDF-1.4") == "Pagina 1\n\nPagina 3"


class TestDownloadPdfText:
    @pytest.mark.asyncio
    async def test_empty_url(self):
        assert await download_pdf_text("") == ""

    @pytest.mark.asyncio
    async def test_downloads_and_extracts(self):
        requested = []

        def handler(request):
            requested.append(request)
            return httpx.Response(200, content=b"%PDF-1.4 fake")

        with patch("zonare.retrieval.documents.PdfReader", return_value=_reader("POT maxim 30%")) as reader_cls:
            text = await download_pdf_text("https://x.ro/L1a.pdf", client=_client(handler))

        assert text == "POT maxim 30%"
        assert reader_cls.call_args.args[0].read() == b"%PDF-1.4 fake"
        assert "Mozilla" in requested[0].headers["user-agent"]

    @pytest.mark.asyncio
    async def test_http_error_returns_empty(self):
        client = _client(lambda request: httpx.Response(404, text="not found"))
        assert await download_pdf_text("https://x.ro/missing.pdf", client=client) == ""

    @pytest.mark.asyncio
    async def test_transport_error_returns_empty(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await download_pdf_text("https://x.ro/L1a.pdf", client=_client(handler)) == ""

    @pytest.mark.asyncio
    async def test_unparseable_pdf_returns_empty(self):
        client = _client(lambda request: httpx.Response(200, content=b"not a pdf"))
        with patch("zonare.retrieval.documents.PdfReader", side_effect=PdfReadError("EOF marker not found")):
            assert await download_pdf_text("https://x.ro/L1a.pdf", client=client) == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [KeyError("/Root"), TypeError("NoneType"), zlib.error("invalid stored block")])
    async def test_corrupt_pdf_internal_errors_return_empty(self, error):
        client = _client(lambda request: httpx.Response(200, content=b"%PDF-1.4 broken"))
        with patch("zonare.retrieval.documents.PdfReader", side_effect=error):
            assert await download_pdf_text("https://x.ro/L1a.pdf", client=client) == ""


class TestIsValidText:
    def test_threshold(self):
        assert is_valid_text("a" * 100)
        assert not is_valid_text("a" * 99)

    def test_whitespace_not_counted(self):
        assert not is_valid_text(" " * 200 + "abc")

    def test_custom_min_length(self):
        assert is_valid_text("abc", min_length=3)
