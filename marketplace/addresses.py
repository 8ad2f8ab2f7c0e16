"""Customer address book.

A customer has at most one default address: every write that sets
``is_default`` clears the others in the same transaction.
"""

import logging
from typing import Dict, List

from bson import ObjectId

from marketplace.errors import NotFoundError, ValidationError
from marketplace.schemas import parse_address_fields
from marketplace.serializers import serialize_address
from marketplace.utils import utcnow

logger = logging.getLogger(__name__)


def _wants_default(payload) -> bool:
    value = payload.get("isDefault", payload.get("is_default"))
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


class AddressService:
    def __init__(self, store):
        self.store = store

    def add(self, customer_id: ObjectId, payload) -> Dict:
        fields = parse_address_fields(payload)
        make_default = _wants_default(payload)

        def callback(session):
            if make_default:
                self.store.addresses.clear_default(customer_id, session=session)
            now = utcnow()
            return self.store.addresses.insert(
                {
                    **fields,
                    "customer_id": customer_id,
                    "is_default": make_default,
                    "created_at": now,
                    "updated_at": now,
                },
                session=session,
            )

        address = self.store.run_transaction(callback)
        logger.info("Customer %s added address %s", customer_id, address["_id"])
        return serialize_address(address)

    def list_for_customer(self, customer_id: ObjectId) -> List[Dict]:
        return [serialize_address(address) for address in self.store.addresses.list_by_customer(customer_id)]

    def update(self, customer_id: ObjectId, address_id: ObjectId, payload) -> Dict:
        fields = parse_address_fields(payload, partial=True)
        make_default = _wants_default(payload)
        if "isDefault" in payload or "is_default" in payload:
            fields["is_default"] = make_default
        if not fields:
            raise ValidationError("No address fields to update")

        def callback(session):
            if not self.store.addresses.find_owned(address_id, customer_id, session=session):
                raise NotFoundError("Address not found")
            if make_default:
                self.store.addresses.clear_default(customer_id, session=session)
            return self.store.addresses.update_owned(address_id, customer_id, fields, session=session)

        return serialize_address(self.store.run_transaction(callback))

    def set_default(self, customer_id: ObjectId, address_id: ObjectId) -> Dict:
        def callback(session):
            if not self.store.addresses.find_owned(address_id, customer_id, session=session):
                raise NotFoundError("Address not found")
            self.store.addresses.clear_default(customer_id, session=session)
            return self.store.addresses.update_owned(
                address_id, customer_id, {"is_default": True}, session=session
            )

        address = self.store.run_transaction(callback)
        logger.info("Customer %s default address is now %s", customer_id, address_id)
        return serialize_address(address)

    def delete(self, customer_id: ObjectId, address_id: ObjectId) -> None:
        if not self.store.addresses.delete_owned(address_id, customer_id):
            raise NotFoundError("Address not found")
