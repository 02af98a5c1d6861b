"""
测试文档上传流水线
"""

import asyncio
import io
import uuid
from unittest.mock import patch

import pytest
from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from starlette.datastructures import Headers

from cloudstore.core.config import settings
from cloudstore.core.exceptions import (AlreadyExistsException,
                                        BadFormatException,
                                        FileTooLargeException,
                                        NotFoundException, StorageIOException)
from cloudstore.db.models.outbox_event import OutboxEvent
from cloudstore.db.models.uploaded_file import UploadedFile
from cloudstore.schemas.report import ContentType, FileStatus
from cloudstore.services.report_service import ReportService
from cloudstore.storage.memory import InMemoryObjectStore

TENANT_ID = 1


def _all_keys(store):
    return [item.key for item in store.list("", recursive=True)]


def _upload_file(filename, data=b"%PDF-1.7", content_type="application/pdf", size=None):
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        size=len(data) if size is None else size,
        headers=Headers({"content-type": content_type}),
    )


class TestReportService:
    """测试上传、状态查询和下载"""

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.store = InMemoryObjectStore()
        self.service = ReportService(db_session, self.store)

    async def _rows(self, model):
        result = await self.db.execute(select(model))
        return list(result.scalars().all())

    async def test_upload_creates_record_and_outbox_event(self):
        response = await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))

        assert response.owner == TENANT_ID
        assert self.store.get("user-1-files/report.pdf").read() == b"%PDF-1.7"
        assert self.store.stat("user-1-files/report.pdf").content_type == "application/pdf"

        files = await self._rows(UploadedFile)
        assert len(files) == 1
        record = files[0]
        assert record.file_id == response.file_id
        assert record.full_path == "user-1-files/report.pdf"
        assert record.content_type == ContentType.PDF
        assert record.status == FileStatus.UPLOADED

        events = await self._rows(OutboxEvent)
        assert len(events) == 1
        assert events[0].processed is False
        assert events[0].payload["fileId"] == str(response.file_id)
        assert events[0].payload["fileName"] == "report.pdf"
        assert events[0].payload["contentType"] == "PDF"
        assert events[0].payload["uploader"] == TENANT_ID
        assert events[0].payload["status"] == "UPLOADED"

    async def test_too_large(self):
        file = _upload_file("report.pdf", size=settings.UPLOAD_MAX_BYTES + 1)
        with pytest.raises(FileTooLargeException):
            await self.service.upload_report(TENANT_ID, file)
        assert _all_keys(self.store) == []

    @pytest.mark.parametrize("filename", ["notes.txt", "archive", "report.pdf.zip"])
    async def test_bad_format(self, filename):
        with pytest.raises(BadFormatException):
            await self.service.upload_report(TENANT_ID, _upload_file(filename))

    async def test_extension_is_case_insensitive(self):
        await self.service.upload_report(TENANT_ID, _upload_file("Sheet.XLSX"))
        files = await self._rows(UploadedFile)
        assert files[0].content_type == ContentType.XLSX

    async def test_duplicate_upload(self):
        await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))
        with pytest.raises(AlreadyExistsException):
            await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))
        assert len(await self._rows(OutboxEvent)) == 1

    async def test_existing_object_without_record(self):
        self.store.put("user-1-files/report.pdf", io.BytesIO(b"old"), 3, "application/pdf")
        with pytest.raises(AlreadyExistsException):
            await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))
        assert self.store.get("user-1-files/report.pdf").read() == b"old"

    async def test_database_failure_removes_orphan(self):
        error = OperationalError("INSERT", {}, Exception("database is locked"))
        with patch.object(self.service.outbox_repo, "add_event", side_effect=error):
            with pytest.raises(StorageIOException):
                await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))

        assert not self.store.exists("user-1-files/report.pdf")
        assert await self._rows(UploadedFile) == []

    async def test_cancelled_upload_removes_orphan(self):
        with patch.object(self.service.outbox_repo, "add_event", side_effect=asyncio.CancelledError()):
            with pytest.raises(asyncio.CancelledError):
                await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))

        assert not self.store.exists("user-1-files/report.pdf")
        assert await self._rows(UploadedFile) == []

    async def test_unexpected_error_removes_orphan(self):
        with patch.object(self.service.outbox_repo, "add_event", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))

        assert not self.store.exists("user-1-files/report.pdf")

    async def test_get_actual_status(self):
        response = await self.service.upload_report(TENANT_ID, _upload_file("report.docx"))

        status = await self.service.get_actual_status(TENANT_ID, response.file_id)
        assert status.file_id == response.file_id
        assert status.status == FileStatus.UPLOADED
        assert status.file_name == "report.docx"
        body = status.model_dump(by_alias=True)
        assert "fileId" in body and "createdAt" in body

    async def test_status_is_owner_only(self):
        response = await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))
        with pytest.raises(NotFoundException):
            await self.service.get_actual_status(2, response.file_id)
        with pytest.raises(NotFoundException):
            await self.service.get_actual_status(TENANT_ID, uuid.uuid4())

    async def test_open_artefact(self):
        response = await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))

        artefact = await self.service.open_artefact(TENANT_ID, response.file_id)
        assert artefact.file_name == "report.pdf"
        assert b"".join(artefact.body) == b"%PDF-1.7"

        with pytest.raises(NotFoundException):
            await self.service.open_artefact(2, response.file_id)

    async def test_open_artefact_missing_object(self):
        response = await self.service.upload_report(TENANT_ID, _upload_file("report.pdf"))
        self.store.remove("user-1-files/report.pdf")
        with pytest.raises(NotFoundException):
            await self.service.open_artefact(TENANT_ID, response.file_id)
