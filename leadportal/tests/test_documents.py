"""
Lead document upload and download tests
"""

import io
import zipfile

import pytest
from fastapi import UploadFile
from sqlalchemy import func, select
from starlette.datastructures import Headers

from leadportal.core.config import settings
from leadportal.models.document import Document
from leadportal.models.lead import Lead
from leadportal.services.documents import read_upload
from leadportal.services.storage import generate_storage_key, get_document_store
from leadportal.main import app
from conftest import FailingDocumentStore


def pdf(name="statement.pdf", content=b"%PDF-1.4 statement"):
    return {"file": (name, content, "application/pdf")}


async def document_count(db_session):
    return (await db_session.execute(select(func.count(Document.id)))).scalar_one()


@pytest.mark.documents
class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_document(self, test_client, db_session, document_store, lead_factory, acme, affiliate_headers):
        lead = await lead_factory("Has Docs", affiliate_id=acme.id)

        response = await test_client.post(f"/leads/{lead.id}/documents", files=pdf(), headers=affiliate_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["file_name"] == "statement.pdf"
        assert data["file_type"] == "application/pdf"
        assert data["file_size"] == len(b"%PDF-1.4 statement")
        assert data["file_url"].endswith(f"?expires={settings.DOCUMENT_UPLOAD_URL_TTL}")

        stored = (await db_session.execute(select(Document))).scalars().one()
        assert stored.storage_key.startswith(f"leads/{lead.id}/")
        assert document_store.objects[stored.storage_key] == b"%PDF-1.4 statement"

    @pytest.mark.asyncio
    async def test_detail_urls_use_short_ttl(self, test_client, lead_factory, admin_headers):
        lead = await lead_factory("Has Docs")
        await test_client.post(f"/leads/{lead.id}/documents", files=pdf(), headers=admin_headers)

        response = await test_client.get(f"/leads/{lead.id}", headers=admin_headers)

        [document] = response.json()["documents"]
        assert document["file_url"].endswith(f"?expires={settings.DOCUMENT_URL_TTL}")

    @pytest.mark.asyncio
    async def test_oversized_document_rejected(self, test_client, db_session, document_store, lead_factory, admin_headers):
        lead = await lead_factory("Big Docs")
        content = b"0" * (6 * 1024 * 1024)

        response = await test_client.post(
            f"/leads/{lead.id}/documents",
            files=pdf("huge.pdf", content),
            headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["message"] == "huge.pdf: File size must be less than 5MB"
        assert await document_count(db_session) == 0
        assert document_store.objects == {}

    @pytest.mark.asyncio
    async def test_unsupported_type_rejected(self, test_client, db_session, lead_factory, admin_headers):
        lead = await lead_factory("Odd Docs")

        response = await test_client.post(
            f"/leads/{lead.id}/documents",
            files={"file": ("macro.docm", b"PK", "application/vnd.ms-word")},
            headers=admin_headers
        )

        assert response.status_code == 400
        assert "Only PDF, JPG, and PNG files are allowed" in response.json()["message"]
        assert await document_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_upload_to_other_affiliate_lead(self, test_client, lead_factory, acme, other_affiliate_headers):
        lead = await lead_factory("Acme Docs", affiliate_id=acme.id)

        response = await test_client.post(f"/leads/{lead.id}/documents", files=pdf(), headers=other_affiliate_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_no_row(self, test_client, db_session, lead_factory, admin_headers):
        lead = await lead_factory("Unlucky")
        app.dependency_overrides[get_document_store] = lambda: FailingDocumentStore()

        response = await test_client.post(f"/leads/{lead.id}/documents", files=pdf(), headers=admin_headers)

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to store document"
        assert await document_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_failed_upload_during_intake_rolls_back_lead(self, test_client, db_session, valid_lead_form, admin_headers):
        store = FailingDocumentStore(succeed=1)
        app.dependency_overrides[get_document_store] = lambda: store
        files = [
            ("documents", ("one.pdf", b"%PDF one", "application/pdf")),
            ("documents", ("two.pdf", b"%PDF two", "application/pdf")),
        ]

        response = await test_client.post("/leads", data=valid_lead_form, files=files, headers=admin_headers)

        assert response.status_code == 500
        assert (await db_session.execute(select(func.count(Lead.id)))).scalar_one() == 0
        assert await document_count(db_session) == 0
        assert store.objects == {}


@pytest.mark.documents
class TestDownload:

    @pytest.mark.asyncio
    async def test_zip_contains_every_document(self, test_client, lead_factory, admin_headers):
        lead = await lead_factory("Zip Me")
        await test_client.post(f"/leads/{lead.id}/documents", files=pdf("a.pdf", b"%PDF a"), headers=admin_headers)
        await test_client.post(f"/leads/{lead.id}/documents", files=pdf("a.pdf", b"%PDF a2"), headers=admin_headers)
        await test_client.post(
            f"/leads/{lead.id}/documents",
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
            headers=admin_headers
        )

        response = await test_client.get(f"/leads/{lead.id}/documents/download", headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert sorted(archive.namelist()) == ["a (1).pdf", "a.pdf", "photo.png"]
            assert archive.read("a.pdf") == b"%PDF a"
            assert archive.read("a (1).pdf") == b"%PDF a2"

    @pytest.mark.asyncio
    async def test_download_without_documents(self, test_client, lead_factory, admin_headers):
        lead = await lead_factory("Empty")

        response = await test_client.get(f"/leads/{lead.id}/documents/download", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "No documents found for this lead"

    @pytest.mark.asyncio
    async def test_download_other_affiliate_lead(self, test_client, lead_factory, globex, affiliate_headers):
        lead = await lead_factory("Globex Docs", affiliate_id=globex.id)

        response = await test_client.get(f"/leads/{lead.id}/documents/download", headers=affiliate_headers)
        assert response.status_code == 403


@pytest.mark.unit
def test_storage_keys_are_unique_and_namespaced():
    first = generate_storage_key(7, "../../etc/passwd.pdf")
    second = generate_storage_key(7, "../../etc/passwd.pdf")

    assert first != second
    assert first.startswith("leads/7/")
    assert first.endswith(".pdf")
    assert ".." not in first


@pytest.mark.unit
@pytest.mark.asyncio
async def test_windows_style_filename_keeps_only_base_name():
    upload = UploadFile(
        file=io.BytesIO(b"%PDF-1.4 x"),
        filename="..\\..\\reports\\x.pdf",
        headers=Headers({"content-type": "application/pdf"}),
    )

    pending = await read_upload(upload)

    assert pending.file_name == "x.pdf"
