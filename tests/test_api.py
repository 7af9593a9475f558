"""
TextLens Backend — API Endpoint Tests
=======================================

What:  End-to-end tests through the FastAPI app with HTTPX.
How:   Real routing, auth, exception handlers and SQLite persistence;
       only Tesseract and Gemini are patched.

What we test:
    ✅ Upload → list → explain for one user; a second user sees nothing
    ✅ Missing or bad tokens → 401 before any work happens
    ✅ Invalid or oversize uploads → 400 with no rows created
    ✅ Commit failures → 500 server_error, stored file removed
    ✅ Pages past the end are empty, however large
    ✅ Explain on foreign or missing ids → 404 without an LLM call
    ✅ Provider quota errors → 429; OCR failures → 500 ocr_error
    ✅ Every response carries X-Request-ID
"""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from textlens.config import settings
from textlens.database import async_session_factory
from textlens.exceptions import LLMRateLimitError, OCRProcessingError
from textlens.models.document import Document
from textlens.models.user import User


async def _document_count() -> int:
    async with async_session_factory() as session:
        return (await session.execute(select(func.count(Document.id)))).scalar_one()


async def _user_count() -> int:
    async with async_session_factory() as session:
        return (await session.execute(select(func.count(User.id)))).scalar_one()


async def _upload(client, headers, content, content_type="image/jpeg", name=None, text="Olá"):
    data = {"name": name} if name is not None else {}
    with patch("textlens.services.document_service.ocr_service") as mock_ocr:
        mock_ocr.extract_text = AsyncMock(return_value=text)
        return await client.post(
            "/ocr/upload",
            files={"file": ("scan.jpg", content, content_type)},
            data=data,
            headers=headers,
        )


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_returns_created_document(self, test_client, auth_headers, jpeg_bytes):
        response = await _upload(test_client, auth_headers, jpeg_bytes, name="Receipt")

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Receipt"
        assert body["text"] == "Olá"
        assert body["userId"] == "u1"
        assert isinstance(body["id"], int)
        assert body["fileUrl"].endswith(".jpg")
        assert "createdAt" in body

    @pytest.mark.asyncio
    async def test_upload_requires_token(self, test_client, jpeg_bytes):
        response = await _upload(test_client, {}, jpeg_bytes)

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert await _document_count() == 0

    @pytest.mark.asyncio
    async def test_pdf_rejected_without_rows(self, test_client, auth_headers):
        response = await _upload(
            test_client, auth_headers, b"%PDF-1.7", content_type="application/pdf"
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "file"
        assert await _document_count() == 0

    @pytest.mark.asyncio
    async def test_oversize_upload_rejected_without_rows(self, test_client, auth_headers):
        content = b"\xff\xd8" + b"\x00" * settings.max_file_size

        response = await _upload(test_client, auth_headers, content)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert await _document_count() == 0
        assert await _user_count() == 0

    @pytest.mark.asyncio
    async def test_missing_file_is_400(self, test_client, auth_headers):
        response = await test_client.post("/ocr/upload", data={"name": "x"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_ocr_failure_is_500(self, test_client, auth_headers, jpeg_bytes):
        with patch("textlens.services.document_service.ocr_service") as mock_ocr:
            mock_ocr.extract_text = AsyncMock(side_effect=OCRProcessingError())
            response = await test_client.post(
                "/ocr/upload",
                files={"file": ("scan.jpg", jpeg_bytes, "image/jpeg")},
                headers=auth_headers,
            )

        assert response.status_code == 500
        assert response.json()["error"] == "ocr_error"
        assert await _document_count() == 0

    @pytest.mark.asyncio
    async def test_commit_failure_is_server_error(self, test_client, auth_headers, jpeg_bytes):
        seen_paths = []

        async def ocr(path):
            seen_paths.append(path)
            return "text"

        failing_commit = AsyncMock(
            side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error"))
        )
        with patch("textlens.services.document_service.ocr_service") as mock_ocr, \
             patch("sqlalchemy.ext.asyncio.AsyncSession.commit", failing_commit):
            mock_ocr.extract_text = AsyncMock(side_effect=ocr)
            response = await test_client.post(
                "/ocr/upload",
                files={"file": ("scan.jpg", jpeg_bytes, "image/jpeg")},
                headers=auth_headers,
            )

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "server_error"
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert not Path(seen_paths[0]).exists()
        assert await _document_count() == 0


class TestList:
    @pytest.mark.asyncio
    async def test_default_page_size_and_totals(self, test_client, auth_headers, jpeg_bytes):
        for i in range(7):
            assert (await _upload(test_client, auth_headers, jpeg_bytes, name=f"d{i}")).status_code == 201

        response = await test_client.get("/ocr/list", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert len(body["documents"]) == 6
        assert body["currentPage"] == 1
        assert body["totalPages"] == 2
        assert body["documents"][0]["name"] == "d6"

    @pytest.mark.asyncio
    async def test_enormous_page_is_empty(self, test_client, auth_headers, jpeg_bytes):
        assert (await _upload(test_client, auth_headers, jpeg_bytes)).status_code == 201

        response = await test_client.get(
            "/ocr/list?page=100000000000000000000", headers=auth_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["documents"] == []
        assert body["totalPages"] == 1

    @pytest.mark.asyncio
    async def test_page_size_over_cap_is_400(self, test_client, auth_headers):
        response = await test_client.get("/ocr/list?pageSize=51", headers=auth_headers)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_non_numeric_page_is_400(self, test_client, auth_headers):
        response = await test_client.get("/ocr/list?page=abc", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_expired_token_is_401(self, test_client, caller, make_token):
        token = make_token(caller, expires_in=-10)

        response = await test_client.get(
            "/ocr/list", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401


class TestExplain:
    @pytest.mark.asyncio
    async def test_explain_own_document(self, test_client, auth_headers, jpeg_bytes):
        doc_id = (await _upload(test_client, auth_headers, jpeg_bytes, text="Total: 10")).json()["id"]

        with patch("textlens.services.document_service.gemini_service") as mock_llm:
            mock_llm.explain = AsyncMock(return_value="The total is 10.")
            response = await test_client.post(
                "/ocr/explain",
                json={"id": doc_id, "query": "What is the total?"},
                headers=auth_headers,
            )

        assert response.status_code == 200
        assert response.json() == {"explanation": "The total is 10."}
        mock_llm.explain.assert_awaited_once_with("Total: 10", "What is the total?")

    @pytest.mark.asyncio
    async def test_missing_document_is_404(self, test_client, auth_headers):
        with patch("textlens.services.document_service.gemini_service") as mock_llm:
            mock_llm.explain = AsyncMock()
            response = await test_client.post(
                "/ocr/explain",
                json={"id": 999, "query": "Anything?"},
                headers=auth_headers,
            )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
        mock_llm.explain.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_out_of_range_id_is_404(self, test_client, auth_headers):
        with patch("textlens.services.document_service.gemini_service") as mock_llm:
            mock_llm.explain = AsyncMock()
            response = await test_client.post(
                "/ocr/explain",
                json={"id": 2**70, "query": "x"},
                headers=auth_headers,
            )

        assert response.status_code == 404
        mock_llm.explain.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_numeric_id_is_400(self, test_client, auth_headers):
        response = await test_client.post(
            "/ocr/explain",
            json={"id": "abc", "query": "Anything?"},
            headers=auth_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_blank_query_is_400(self, test_client, auth_headers):
        response = await test_client.post(
            "/ocr/explain",
            json={"id": 1, "query": "   "},
            headers=auth_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_rate_limit_is_429(self, test_client, auth_headers, jpeg_bytes):
        doc_id = (await _upload(test_client, auth_headers, jpeg_bytes)).json()["id"]

        with patch("textlens.services.document_service.gemini_service") as mock_llm:
            mock_llm.explain = AsyncMock(side_effect=LLMRateLimitError())
            response = await test_client.post(
                "/ocr/explain",
                json={"id": doc_id, "query": "Explain"},
                headers=auth_headers,
            )

        assert response.status_code == 429
        assert response.json()["error"] == "llm_rate_limited"


class TestTwoUsers:
    @pytest.mark.asyncio
    async def test_documents_are_private(
        self, test_client, caller, other_caller, make_token, jpeg_bytes
    ):
        u1 = {"Authorization": f"Bearer {make_token(caller)}"}
        u2 = {"Authorization": f"Bearer {make_token(other_caller)}"}

        doc_id = (await _upload(test_client, u1, jpeg_bytes, name="Invoice")).json()["id"]

        own = (await test_client.get("/ocr/list?search=inv", headers=u1)).json()
        assert [d["id"] for d in own["documents"]] == [doc_id]

        others = (await test_client.get("/ocr/list", headers=u2)).json()
        assert others == {"documents": [], "currentPage": 1, "totalPages": 0}

        with patch("textlens.services.document_service.gemini_service") as mock_llm:
            mock_llm.explain = AsyncMock()
            response = await test_client.post(
                "/ocr/explain",
                json={"id": doc_id, "query": "What is it?"},
                headers=u2,
            )

        assert response.status_code == 404
        mock_llm.explain.assert_not_awaited()


class TestCrossCutting:
    @pytest.mark.asyncio
    async def test_request_id_generated(self, test_client):
        response = await test_client.get("/ocr/list")

        assert response.status_code == 401
        assert response.headers["X-Request-ID"]
        assert response.json()["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client, auth_headers):
        headers = {**auth_headers, "X-Request-ID": "trace-123"}

        response = await test_client.get("/ocr/list", headers=headers)

        assert response.headers["X-Request-ID"] == "trace-123"

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        with patch(
            "textlens.routes.health.ocr_service.health_check",
            AsyncMock(return_value=True),
        ):
            response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["ocr"] == "available"
        assert "uptimeSeconds" in body

    @pytest.mark.asyncio
    async def test_health_degraded_without_tesseract(self, test_client):
        with patch(
            "textlens.routes.health.ocr_service.health_check",
            AsyncMock(return_value=False),
        ):
            response = await test_client.get("/health")

        assert response.json()["status"] == "degraded"
