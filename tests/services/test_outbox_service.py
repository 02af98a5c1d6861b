"""
测试发件箱调度与清理
"""

import threading
import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from kombu.exceptions import OperationalError as KombuOperationalError
from sqlalchemy import select

from cloudstore.db.models.outbox_event import OutboxEvent
from cloudstore.db.repositories.outbox_repository import OutboxRepository
from cloudstore.services.outbox_service import OutboxCleaner, OutboxDispatcher
from cloudstore.utils.datetime import now_utc


class TestOutboxDispatcher:
    """测试发件箱调度"""

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.repo = OutboxRepository(db_session)
        self.publisher = MagicMock()

    async def _add_events(self, count):
        base = now_utc() - timedelta(minutes=10)
        file_ids = []
        for index in range(count):
            file_id = uuid.uuid4()
            await self.repo.add_event(
                file_id, {"fileId": str(file_id)}, base + timedelta(seconds=index)
            )
            file_ids.append(file_id)
        await self.db.commit()
        return file_ids

    async def _processed_flags(self):
        result = await self.db.execute(select(OutboxEvent).order_by(OutboxEvent.id))
        events = list(result.scalars().all())
        for event in events:
            await self.db.refresh(event)
        return [event.processed for event in events]

    async def test_publishes_in_order_and_marks_processed(self):
        file_ids = await self._add_events(3)

        dispatched = await OutboxDispatcher(self.db, self.publisher).dispatch_batch()

        assert dispatched == 3
        published = [call.args[0] for call in self.publisher.publish_file_uploaded.call_args_list]
        assert published == file_ids
        assert await self._processed_flags() == [True, True, True]

    async def test_empty_outbox(self):
        assert await OutboxDispatcher(self.db, self.publisher).dispatch_batch() == 0
        self.publisher.publish_file_uploaded.assert_not_called()

    async def test_batch_size(self):
        await self._add_events(3)
        dispatched = await OutboxDispatcher(self.db, self.publisher, batch_size=2).dispatch_batch()
        assert dispatched == 2
        assert await self._processed_flags() == [True, True, False]

    async def test_publish_failure_stops_batch(self):
        file_ids = await self._add_events(3)
        self.publisher.publish_file_uploaded.side_effect = [
            None,
            KombuOperationalError("broker unavailable"),
            None,
        ]

        dispatched = await OutboxDispatcher(self.db, self.publisher).dispatch_batch()

        assert dispatched == 1
        assert self.publisher.publish_file_uploaded.call_count == 2
        assert await self._processed_flags() == [True, False, False]

        # 下一轮从失败的事件继续
        self.publisher.publish_file_uploaded.side_effect = None
        self.publisher.publish_file_uploaded.reset_mock()
        assert await OutboxDispatcher(self.db, self.publisher).dispatch_batch() == 2
        published = [call.args[0] for call in self.publisher.publish_file_uploaded.call_args_list]
        assert published == file_ids[1:]

    async def test_publish_runs_outside_event_loop_thread(self):
        await self._add_events(1)
        loop_thread = threading.get_ident()
        publish_threads = []
        self.publisher.publish_file_uploaded.side_effect = (
            lambda file_id, payload: publish_threads.append(threading.get_ident())
        )

        assert await OutboxDispatcher(self.db, self.publisher).dispatch_batch() == 1
        assert publish_threads and publish_threads[0] != loop_thread


class TestOutboxCleaner:
    """测试发件箱清理"""

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.repo = OutboxRepository(db_session)

    async def test_purge_only_old_processed_events(self):
        now = now_utc()
        old = now - timedelta(days=30)
        old_processed = await self.repo.add_event(uuid.uuid4(), {}, old)
        old_pending = await self.repo.add_event(uuid.uuid4(), {}, old)
        recent_processed = await self.repo.add_event(uuid.uuid4(), {}, now)
        await self.repo.mark_processed([old_processed.id, recent_processed.id])
        await self.db.commit()
        kept_ids = {old_pending.id, recent_processed.id}

        deleted = await OutboxCleaner(self.db).purge(now=now)

        assert deleted == 1
        result = await self.db.execute(select(OutboxEvent.id))
        assert set(result.scalars().all()) == kept_ids
