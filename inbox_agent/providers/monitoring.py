"""
Polling-based change detection for email providers.

Vendors expose an opaque cursor (Gmail history id, Graph delta link). A
subclass records the cursor at start and returns messages newer than it on
each poll; this base runs the timer, deduplicates by message id and delivers
each new message to every subscribed callback exactly once.
"""

import asyncio
import inspect
import logging
from abc import abstractmethod
from collections import OrderedDict

from inbox_agent.exceptions import ProviderError
from inbox_agent.models import AccountInfo, Message
from inbox_agent.providers.base import EmailCallback, EmailProvider

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0

# Ids remembered for deduplication before the oldest are forgotten
SEEN_CACHE_SIZE = 5000


class PollingEmailProvider(EmailProvider):
    """Email provider with a poll loop and callback fan-out.

    Args:
        account: Account whose mailbox is polled
        poll_interval: Seconds between polls
    """

    def __init__(self, account: AccountInfo, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self.account = account
        self.poll_interval = poll_interval
        self._callbacks: list[EmailCallback] = []
        self._seen_ids: OrderedDict[str, None] = OrderedDict()
        self._task: asyncio.Task | None = None
        self._active = False

    @property
    def is_monitoring(self) -> bool:
        return self._active

    def subscribe_to_changes(self, callback: EmailCallback) -> None:
        self._callbacks.append(callback)

    async def start_monitoring(self) -> None:
        if self._active:
            return
        await self._establish_baseline()
        self._active = True
        self._task = asyncio.create_task(
            self._poll_loop(), name=f"poll-{self.account.provider_type.value}-{self.account.id}"
        )
        logger.info(
            f"Started monitoring {self.account.email} every {self.poll_interval}s",
            extra={"account_id": self.account.id, "provider_type": self.account.provider_type.value},
        )

    async def stop_monitoring(self) -> None:
        self._active = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        if task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception(
                    f"Poll task for {self.account.email} had failed before stop",
                    extra={"account_id": self.account.id},
                )
        logger.info(
            f"Stopped monitoring {self.account.email}",
            extra={"account_id": self.account.id},
        )

    async def _poll_loop(self) -> None:
        while self._active:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.poll_once()
            except ProviderError as e:
                logger.warning(
                    f"Poll failed for {self.account.email}: {e}",
                    extra={"account_id": self.account.id},
                )
            except Exception:
                logger.exception(
                    f"Unexpected poll failure for {self.account.email}",
                    extra={"account_id": self.account.id},
                )

    async def poll_once(self) -> int:
        """Fetch changes since the cursor and notify subscribers.

        Returns:
            Number of newly delivered messages
        """
        messages = await self._fetch_changes()
        delivered = 0
        for message in messages:
            if not self._active:
                break
            if not self._mark_seen(message.id):
                continue
            await self._notify(message)
            delivered += 1
        return delivered

    def _mark_seen(self, message_id: str) -> bool:
        """Record an id. Returns False if it was already seen."""
        if message_id in self._seen_ids:
            return False
        self._seen_ids[message_id] = None
        while len(self._seen_ids) > SEEN_CACHE_SIZE:
            self._seen_ids.popitem(last=False)
        return True

    async def _notify(self, message: Message) -> None:
        for callback in list(self._callbacks):
            if not self._active:
                return
            try:
                result = callback(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    f"Change callback failed for message {message.id}",
                    extra={"account_id": self.account.id, "email_id": message.id},
                )

    @abstractmethod
    async def _establish_baseline(self) -> None:
        """Record the current cursor and mark existing ids seen, without notifying."""
        pass

    @abstractmethod
    async def _fetch_changes(self) -> list[Message]:
        """Messages added since the cursor; advances the cursor."""
        pass
