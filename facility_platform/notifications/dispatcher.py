"""
通知分发器

业务处理器通过 submit() 把通知交给后台队列后立即返回，不等待投递结果。
后台工作协程调用 NotificationService.notify()，任何异常都只在这里记录一次。
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from shared.config import NotificationSettings

from .manager import NotificationService
from .types import EventKey, NotificationPayload, NotifyStatus


logger = logging.getLogger(__name__)


@dataclass
class _Job:
    event_key: Union[EventKey, str]
    payload: Union[NotificationPayload, Mapping[str, Any], None]


class NotificationDispatcher:
    """后台通知分发器"""

    def __init__(self, service: NotificationService, settings: Optional[NotificationSettings] = None):
        self.service = service
        self.settings = settings or service.config
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._running = False
        self._stats = {"submitted": 0, "rejected": 0, "processed": 0, "errors": 0}

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """启动工作协程"""
        if self._running:
            return

        self._queue = asyncio.Queue(maxsize=self.settings.dispatch_queue_size)
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"notification-worker-{i}")
            for i in range(max(1, self.settings.dispatch_workers))
        ]
        logger.info(f"通知分发器已启动 (工作协程: {len(self._workers)})")

    def submit(
        self,
        event_key: Union[EventKey, str],
        payload: Union[NotificationPayload, Mapping[str, Any], None] = None
    ) -> bool:
        """
        提交一条通知，不阻塞调用方

        Returns:
            bool: 是否已进入队列；分发器未运行或队列已满时返回 False
        """
        if not self._running:
            logger.warning(f"通知分发器未运行，丢弃通知: {event_key}")
            self._stats["rejected"] += 1
            return False

        try:
            self._queue.put_nowait(_Job(event_key, payload))
        except asyncio.QueueFull:
            logger.error(f"通知队列已满，丢弃通知: {event_key}")
            self._stats["rejected"] += 1
            return False

        self._stats["submitted"] += 1
        return True

    async def _worker(self, index: int):
        """工作协程主循环"""
        while True:
            job = await self._queue.get()
            try:
                result = await self.service.notify(job.event_key, job.payload)
                if result.status == NotifyStatus.ERROR:
                    logger.warning(f"通知 {job.event_key} 未能分发: {result.error}")
                self._stats["processed"] += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                self._stats["errors"] += 1
                logger.exception(f"通知 {job.event_key} 分发时发生未处理的异常")
            finally:
                self._queue.task_done()

    async def join(self):
        """等待队列中已提交的通知全部处理完成"""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, timeout: Optional[float] = None):
        """停止分发器，先在超时时间内处理完已提交的通知"""
        if not self._running:
            return

        self._running = False
        drain_timeout = self.settings.dispatch_drain_timeout if timeout is None else timeout

        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"通知队列未能在 {drain_timeout}s 内处理完，剩余 {self._queue.qsize()} 条被丢弃")

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        logger.info("通知分发器已停止")

    def get_statistics(self) -> Dict[str, Any]:
        stats = dict(self._stats)
        stats["pending"] = self._queue.qsize() if self._queue is not None else 0
        stats["running"] = self._running
        return stats
