"""
Notification Service - In-app notification center and the post-commit
dispatcher that turns domain events into notifications.
"""

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from pawpath.config import settings
from pawpath.errors import NotFoundError
from pawpath.models.identity import Identity
from pawpath.models.notification import Notification, NotificationType
from pawpath.repositories.base import Store
from pawpath.services.events import (
    DomainEvent,
    NewRequestNearby,
    OfferAccepted,
    OfferReceived,
    RequestCancelled,
    ReviewReceived,
    WalkCancelled,
    WalkCompleted,
    WalkerArrived,
    WalkStarted,
)
from pawpath.services.notification_content import (
    NEW_REQUEST_BODIES,
    NEW_REQUEST_TITLES,
    OFFER_ACCEPTED_BODIES,
    OFFER_ACCEPTED_TITLES,
    OFFER_RECEIVED_BODIES,
    OFFER_RECEIVED_TITLES,
    REQUEST_CANCELLED_BODIES,
    REQUEST_CANCELLED_TITLES,
    REVIEW_RECEIVED_BODIES,
    REVIEW_RECEIVED_TITLES,
    WALK_CANCELLED_BODIES,
    WALK_CANCELLED_TITLES,
    WALK_COMPLETED_BODIES,
    WALK_COMPLETED_TITLES,
    WALK_STARTED_BODIES,
    WALK_STARTED_TITLES,
    WALKER_ARRIVED_BODIES,
    WALKER_ARRIVED_TITLES,
    pick,
)
from pawpath.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Notification emitter and inbox.

    emit() writes one row to the notifications collection. Reading and
    marking notifications is scoped to the calling user.
    """

    def __init__(self, store: Store, clock: Callable = utc_now):
        self.store = store
        self.clock = clock

    async def emit(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Store an in-app notification for a user."""
        notification = Notification(
            notification_id=str(uuid.uuid4()),
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            link=link,
            data=data,
            read=False,
            created_at=self.clock(),
        )
        async with self.store.transaction() as uow:
            await uow.notifications.add(notification)
        return notification

    async def get_notifications(
        self,
        identity: Identity,
        limit: Optional[int] = None,
        unread_only: bool = False,
    ) -> List[Notification]:
        """Get the caller's notifications, newest first."""
        async with self.store.transaction() as uow:
            return await uow.notifications.list_for_user(
                identity.user_id,
                limit=limit or settings.notifications_page_size,
                unread_only=unread_only,
            )

    async def get_unread_count(self, identity: Identity) -> int:
        async with self.store.transaction() as uow:
            return await uow.notifications.count_unread(identity.user_id)

    async def mark_read(self, identity: Identity, notification_id: str) -> None:
        """Mark one notification as read. Unknown or foreign ids are not found."""
        async with self.store.transaction() as uow:
            found = await uow.notifications.mark_read(identity.user_id, notification_id)
        if not found:
            raise NotFoundError("Notification", notification_id)

    async def mark_all_read(self, identity: Identity) -> int:
        async with self.store.transaction() as uow:
            return await uow.notifications.mark_all_read(identity.user_id)


class NotificationDispatcher:
    """
    Consumes domain events after the transaction that raised them committed.

    Delivery is fire-and-forget: every failure is logged and swallowed, so a
    broken notification channel never affects the transition itself. In
    background mode each publish() runs in its own task; drain() waits for
    the pending ones (used on shutdown and in tests).
    """

    def __init__(
        self,
        notifications: NotificationService,
        background: Optional[bool] = None,
    ):
        self.notifications = notifications
        self.background = (
            settings.notifications_in_background if background is None else background
        )
        self._tasks: Set[asyncio.Task] = set()

    async def publish(self, events: Iterable[DomainEvent]) -> None:
        events = list(events)
        if not events:
            return
        if self.background:
            task = asyncio.create_task(self._deliver_all(events))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            await self._deliver_all(events)

    async def drain(self) -> None:
        """Wait for background deliveries still in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _deliver_all(self, events: List[DomainEvent]) -> None:
        for event in events:
            try:
                await self._deliver(event)
            except Exception:
                logger.exception(f"Failed to deliver notification for {event!r}")

    async def _deliver(self, event: DomainEvent) -> None:
        emit = self.notifications.emit

        if isinstance(event, OfferReceived):
            await emit(
                event.owner_id,
                NotificationType.OFFER_RECEIVED,
                pick(OFFER_RECEIVED_TITLES),
                pick(OFFER_RECEIVED_BODIES).replace("{price}", f"{event.price:g}"),
                f"/walk-requests/{event.request_id}",
                {"request_id": event.request_id, "offer_id": event.offer_id},
            )
        elif isinstance(event, OfferAccepted):
            await emit(
                event.walker_id,
                NotificationType.OFFER_ACCEPTED,
                pick(OFFER_ACCEPTED_TITLES),
                pick(OFFER_ACCEPTED_BODIES),
                f"/walk-assignments/{event.assignment_id}",
                {"request_id": event.request_id, "assignment_id": event.assignment_id},
            )
        elif isinstance(event, WalkerArrived):
            await emit(
                event.owner_id,
                NotificationType.WALKER_ARRIVED,
                pick(WALKER_ARRIVED_TITLES),
                pick(WALKER_ARRIVED_BODIES),
                f"/walk-assignments/{event.assignment_id}/route",
                {"assignment_id": event.assignment_id},
            )
        elif isinstance(event, WalkStarted):
            await emit(
                event.owner_id,
                NotificationType.WALK_STARTED,
                pick(WALK_STARTED_TITLES),
                pick(WALK_STARTED_BODIES),
                f"/walk-assignments/{event.assignment_id}/route",
                {"assignment_id": event.assignment_id},
            )
        elif isinstance(event, WalkCompleted):
            await emit(
                event.owner_id,
                NotificationType.WALK_COMPLETED,
                pick(WALK_COMPLETED_TITLES),
                pick(WALK_COMPLETED_BODIES),
                f"/walk-assignments/{event.assignment_id}",
                {"assignment_id": event.assignment_id, "walker_id": event.walker_id},
            )
        elif isinstance(event, WalkCancelled):
            await emit(
                event.recipient_id,
                NotificationType.WALK_CANCELLED,
                pick(WALK_CANCELLED_TITLES),
                pick(WALK_CANCELLED_BODIES).replace("{party}", event.cancelled_by),
                f"/walk-assignments/{event.assignment_id}",
                {"assignment_id": event.assignment_id, "reason": event.reason},
            )
        elif isinstance(event, ReviewReceived):
            await emit(
                event.walker_id,
                NotificationType.REVIEW_RECEIVED,
                pick(REVIEW_RECEIVED_TITLES),
                pick(REVIEW_RECEIVED_BODIES).replace("{rating}", str(event.rating)),
                "/profile",
                {"assignment_id": event.assignment_id, "review_id": event.review_id},
            )
        elif isinstance(event, NewRequestNearby):
            await emit(
                event.walker_id,
                NotificationType.NEW_REQUEST_NEARBY,
                pick(NEW_REQUEST_TITLES),
                pick(NEW_REQUEST_BODIES).replace("{zone}", event.zone),
                f"/walk-requests/{event.request_id}",
                {"request_id": event.request_id},
            )
        elif isinstance(event, RequestCancelled):
            await emit(
                event.walker_id,
                NotificationType.REQUEST_CANCELLED,
                pick(REQUEST_CANCELLED_TITLES),
                pick(REQUEST_CANCELLED_BODIES),
                "/walker/dashboard",
                {"request_id": event.request_id},
            )
        else:
            logger.warning(f"No notification mapped for event {type(event).__name__}")
