"""Customer activity and seller notification feeds.

A feed entry is new when it was created after the account's
``last_notification_seen_at``; marking an entry seen moves that marker to the
entry's own ``created_at`` and ``_id``. Entries written by one callback share a
timestamp, so ties are ordered by ``_id``.
"""

import logging
from typing import Dict, List, Optional

from bson import ObjectId

from marketplace.errors import NotFoundError
from marketplace.security import Actor
from marketplace.serializers import serialize_activity, serialize_seller_notification

logger = logging.getLogger(__name__)


def is_new(entry: Dict, last_seen_at, last_seen_id: Optional[ObjectId] = None) -> bool:
    if last_seen_at is None:
        return True
    created_at = entry.get("created_at")
    if created_at is None:
        return False
    if created_at == last_seen_at and last_seen_id is not None:
        return entry.get("_id") is not None and entry["_id"] > last_seen_id
    return created_at > last_seen_at


class NotificationService:
    def __init__(self, store):
        self.store = store

    def _feed(self, actor: Actor):
        if actor.role == "seller":
            return self.store.seller_notifications, "seller_id", self.store.sellers
        return self.store.activities, "customer_id", self.store.customers

    def feed(self, actor: Actor) -> List[Dict]:
        accounts = self._feed(actor)[2]
        account = accounts.find_by_id(actor.id) or actor.document
        last_seen_at = account.get("last_notification_seen_at")
        last_seen_id = account.get("last_notification_seen_id")
        if actor.role == "seller":
            entries = self.store.seller_notifications.list_by_seller(actor.id)
            return [
                serialize_seller_notification(entry, is_new(entry, last_seen_at, last_seen_id)) for entry in entries
            ]
        entries = self.store.activities.list_by_customer(actor.id)
        return [serialize_activity(entry, is_new(entry, last_seen_at, last_seen_id)) for entry in entries]

    def mark_seen(self, actor: Actor, notification_id: ObjectId) -> Dict:
        entries, owner_field, accounts = self._feed(actor)
        entry = entries.find_by_id(notification_id)
        if not entry or entry.get(owner_field) != actor.id:
            raise NotFoundError("Notification not found")

        accounts.update_fields(
            actor.id,
            {"last_notification_seen_at": entry.get("created_at"), "last_notification_seen_id": entry["_id"]},
        )
        logger.debug("%s %s saw notifications up to %s", actor.role, actor.id, notification_id)
        return {"lastNotificationSeen": str(notification_id)}
