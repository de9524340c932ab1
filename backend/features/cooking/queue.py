# features/cooking/queue.py
"""
세션 큐 - 세션 상태를 바꾸는 작업(프레임/사용자 메시지/타이머/세션 시작)을
도착 순서대로 하나씩 실행하는 단일 레인 액터
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]


class SessionQueue:
    """작업은 채널(asyncio.Queue)로 전달되고, 워커 하나가 순서대로 끝까지 실행"""

    def __init__(self, name: str = "cook"):
        self.name = name
        self._inbox: Optional["asyncio.Queue[Tuple[str, TaskFactory, asyncio.Future]]"] = None
        self._worker: Optional[asyncio.Task] = None

    def _ensure_worker(self, loop: asyncio.AbstractEventLoop):
        if self._worker is not None and not self._worker.done() and self._worker.get_loop() is loop:
            return
        self._inbox = asyncio.Queue()
        self._worker = loop.create_task(self._run(), name=f"session-queue-{self.name}")

    def submit(self, factory: TaskFactory, label: str = "task") -> "asyncio.Future[Any]":
        """작업 등록. 반환된 future는 해당 작업이 끝나면 완료된다."""
        loop = asyncio.get_running_loop()
        self._ensure_worker(loop)
        future = loop.create_future()
        self._inbox.put_nowait((label, factory, future))
        return future

    async def _run(self):
        while True:
            label, factory, future = await self._inbox.get()
            # 작업별 자식 태스크: 작업 안의 취소가 워커까지 번지지 않음
            job = asyncio.ensure_future(self._call(factory))
            try:
                await asyncio.wait({job})
            except asyncio.CancelledError:
                # 워커 자체가 취소됨 (close 또는 루프 종료)
                job.cancel()
                if not future.done():
                    future.cancel()
                raise
            else:
                self._settle(label, job, future)
            finally:
                self._inbox.task_done()

    @staticmethod
    async def _call(factory: TaskFactory) -> Any:
        return await factory()

    def _settle(self, label: str, job: "asyncio.Future[Any]", future: "asyncio.Future[Any]"):
        if job.cancelled():
            logger.warning(f"[Session Queue:{self.name}] '{label}' 취소됨")
            if not future.done():
                future.cancel()
            return

        exc = job.exception()
        if exc is not None:
            logger.error(f"[Session Queue:{self.name}] '{label}' 실패: {exc}", exc_info=exc)
            if not future.done():
                future.set_exception(exc)
        elif not future.done():
            future.set_result(job.result())

    async def join(self):
        """대기 중인 작업이 모두 끝날 때까지 대기"""
        if self._inbox is not None:
            await self._inbox.join()

    async def close(self):
        if self._worker is None:
            return
        self._worker.cancel()
        if self._worker.get_loop() is asyncio.get_running_loop():
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            # 실행되지 못한 작업의 future는 취소로 마무리
            while not self._inbox.empty():
                _, _, future = self._inbox.get_nowait()
                if not future.done():
                    future.cancel()
        self._worker = None
        self._inbox = None
