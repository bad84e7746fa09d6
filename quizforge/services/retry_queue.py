import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional

from quizforge.core.config import settings
from quizforge.core.errors import AIError
from quizforge.core.notifications import Notifier, log_notifier
from quizforge.core.retry import RetryOptions, safe_ai_operation

logger = logging.getLogger(__name__)


@dataclass
class QueueItem:
    operation: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    retry_count: int = 0
    max_retries: int = 3


class RetryQueue:
    """
    Bounded-concurrency work queue with re-queueing.

    Up to ``concurrent_limit`` items run at once, each through
    ``safe_ai_operation``. An item that still fails goes to the back of the
    queue until it has used ``max_retries`` re-queues, then its future fails.
    """

    def __init__(
        self,
        concurrent_limit: int = settings.RETRY_QUEUE_CONCURRENCY,
        retry_options: Optional[RetryOptions] = None,
        notifier: Notifier = log_notifier,
    ):
        if concurrent_limit < 1:
            raise ValueError("concurrent_limit must be at least 1")
        self._queue: Deque[QueueItem] = deque()
        self._processing = False
        self._concurrent_limit = concurrent_limit
        self._retry_options = retry_options
        self._notifier = notifier
        self._drain_task: Optional[asyncio.Task] = None

    def add(self, operation: Callable[[], Awaitable[Any]], max_retries: int = 3) -> asyncio.Future:
        """Enqueue work; the returned future settles when it succeeds or runs out of retries."""
        future = asyncio.get_running_loop().create_future()
        self._queue.append(QueueItem(operation=operation, future=future, max_retries=max_retries))
        if not self._processing:
            self._drain_task = asyncio.ensure_future(self._process_queue())
        return future

    async def _process_queue(self) -> None:
        if self._processing or not self._queue:
            return

        self._processing = True
        try:
            while self._queue:
                take = min(self._concurrent_limit, len(self._queue))
                batch = [self._queue.popleft() for _ in range(take)]
                logger.debug(f"[QUEUE] Running {len(batch)} item(s), {len(self._queue)} pending")
                await asyncio.gather(*(self._process_item(item) for item in batch))
        finally:
            self._processing = False

    async def _process_item(self, item: QueueItem) -> None:
        try:
            result = await safe_ai_operation(item.operation, self._retry_options, self._notifier)
        except AIError as e:
            if item.retry_count < item.max_retries:
                item.retry_count += 1
                logger.info(f"[QUEUE] Re-queueing item (retry {item.retry_count}/{item.max_retries}): {e.message}")
                self._queue.append(item)
            elif not item.future.done():
                item.future.set_exception(e)
            return

        if not item.future.done():
            item.future.set_result(result)

    def clear(self) -> None:
        """Drop pending items. Their futures are left unsettled."""
        self._queue.clear()

    @property
    def size(self) -> int:
        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        return self._processing
