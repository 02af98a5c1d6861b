"""
测试仓库层查询
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from cloudstore.db.repositories.outbox_repository import OutboxRepository
from cloudstore.db.repositories.uploaded_file_repository import \
    UploadedFileRepository
from cloudstore.schemas.report import (ContentType, FileStatus,
                                       UploadedFileCreate)
from cloudstore.utils.datetime import now_utc


def _file_in(name, uploader_id=1, status=FileStatus.UPLOADED, created_at=None):
    created_at = created_at or now_utc()
    return UploadedFileCreate(
        file_id=uuid.uuid4(),
        file_name=name,
        full_path=f"user-{uploader_id}-files/{name}",
        content_type=ContentType.PDF,
        file_size=1,
        uploader_id=uploader_id,
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )


class TestUploadedFileRepository:
    """测试上传记录仓库"""

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.repo = UploadedFileRepository(db_session)

    async def test_get_by_path_and_owner(self):
        created = await self.repo.create(obj_in=_file_in("a.pdf"))

        found = await self.repo.get_by_path_and_owner("user-1-files/a.pdf", 1)
        assert found.file_id == created.file_id
        assert await self.repo.get_by_path_and_owner("user-1-files/a.pdf", 2) is None
        assert (await self.repo.get_by_path("user-1-files/a.pdf")).file_id == created.file_id

    async def test_unique_path_per_uploader(self):
        await self.repo.create(obj_in=_file_in("a.pdf"))
        with pytest.raises(IntegrityError):
            await self.repo.create(obj_in=_file_in("a.pdf"))
        await self.db.rollback()

    async def test_find_by_status_and_created_before(self):
        now = now_utc()
        old = now - timedelta(days=10)
        await self.repo.create(obj_in=_file_in("old-done.pdf", status=FileStatus.COMPLETED, created_at=old))
        await self.repo.create(obj_in=_file_in("old-failed.pdf", status=FileStatus.FAILED, created_at=old - timedelta(hours=1)))
        await self.repo.create(obj_in=_file_in("old-new.pdf", status=FileStatus.UPLOADED, created_at=old))
        await self.repo.create(obj_in=_file_in("new-done.pdf", status=FileStatus.COMPLETED, created_at=now))

        files = await self.repo.find_by_status_in_and_created_before(
            [FileStatus.COMPLETED, FileStatus.FAILED], now - timedelta(days=1)
        )
        assert [file.file_name for file in files] == ["old-failed.pdf", "old-done.pdf"]

        limited = await self.repo.find_by_status_in_and_created_before(
            [FileStatus.COMPLETED, FileStatus.FAILED], now - timedelta(days=1), limit=1
        )
        assert len(limited) == 1

    async def test_update_status(self):
        file = await self.repo.create(obj_in=_file_in("a.pdf"))
        later = now_utc() + timedelta(minutes=1)

        await self.repo.update_status(file, FileStatus.PROCESSING, "working", later)

        found = await self.repo.get_by_id(file.file_id)
        assert found.status == FileStatus.PROCESSING
        assert found.notes == "working"

    async def test_delete(self):
        file = await self.repo.create(obj_in=_file_in("a.pdf"))
        await self.repo.delete(db_obj=file)
        assert await self.repo.get_by_path("user-1-files/a.pdf") is None


class TestOutboxRepository:
    """测试发件箱仓库"""

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.repo = OutboxRepository(db_session)

    async def test_lock_unprocessed_batch_order(self):
        now = now_utc()
        later = await self.repo.add_event(uuid.uuid4(), {"n": 2}, now)
        earlier = await self.repo.add_event(uuid.uuid4(), {"n": 1}, now - timedelta(seconds=5))
        done = await self.repo.add_event(uuid.uuid4(), {"n": 0}, now - timedelta(seconds=10))
        await self.repo.mark_processed([done.id])

        batch = await self.repo.lock_unprocessed_batch(10)
        assert [event.id for event in batch] == [earlier.id, later.id]
        assert batch[0].payload == {"n": 1}

    async def test_mark_processed(self):
        event = await self.repo.add_event(uuid.uuid4(), {}, now_utc())
        assert await self.repo.mark_processed([]) == 0
        assert await self.repo.mark_processed([event.id]) == 1
        # 已处理的事件不会被重复标记
        assert await self.repo.mark_processed([event.id]) == 0

    async def test_delete_processed_before(self):
        now = now_utc()
        old = await self.repo.add_event(uuid.uuid4(), {}, now - timedelta(days=8))
        await self.repo.add_event(uuid.uuid4(), {}, now - timedelta(days=8))
        await self.repo.mark_processed([old.id])

        assert await self.repo.delete_processed_before(now - timedelta(days=7)) == 1
        assert await self.repo.lock_unprocessed_batch(10) != []
