"""MongoDB repositories, one per collection.

Every write that takes part in checkout accepts ``session`` so it joins the
caller's multi-document transaction.
"""

from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from marketplace.utils import utcnow


class MongoRepository:
    def __init__(self, collection):
        self.collection = collection

    def find_by_id(self, document_id: ObjectId, session=None) -> Optional[Dict]:
        return self.collection.find_one({"_id": document_id}, session=session)

    def insert(self, document: Dict, session=None) -> Dict:
        document.setdefault("created_at", utcnow())
        result = self.collection.insert_one(document, session=session)
        document["_id"] = result.inserted_id
        return document

    def delete(self, document_id: ObjectId, session=None) -> bool:
        result = self.collection.delete_one({"_id": document_id}, session=session)
        return result.deleted_count > 0


class AccountRepository(MongoRepository):
    """Customers and sellers share the same account lookups."""

    def find_by_email(self, email: str) -> Optional[Dict]:
        return self.collection.find_one({"email": email})

    def update_fields(self, account_id: ObjectId, fields: Dict) -> Optional[Dict]:
        fields = {**fields, "updated_at": utcnow()}
        return self.collection.find_one_and_update(
            {"_id": account_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )


class ProductRepository(MongoRepository):
    def list_by_seller(self, seller_id: ObjectId) -> List[Dict]:
        return list(self.collection.find({"seller_id": seller_id}).sort("created_at", DESCENDING))

    def ids_by_seller(self, seller_id: ObjectId) -> List[ObjectId]:
        return [doc["_id"] for doc in self.collection.find({"seller_id": seller_id}, {"_id": 1})]

    def find_many(self, product_ids: Iterable[ObjectId]) -> List[Dict]:
        return list(self.collection.find({"_id": {"$in": list(product_ids)}}))


class AddressRepository(MongoRepository):
    def find_owned(self, address_id: ObjectId, customer_id: ObjectId, session=None) -> Optional[Dict]:
        return self.collection.find_one(
            {"_id": address_id, "customer_id": customer_id}, session=session
        )

    def list_by_customer(self, customer_id: ObjectId) -> List[Dict]:
        return list(
            self.collection.find({"customer_id": customer_id}).sort(
                [("is_default", DESCENDING), ("created_at", ASCENDING)]
            )
        )

    def update_owned(self, address_id: ObjectId, customer_id: ObjectId, fields: Dict, session=None) -> Optional[Dict]:
        fields = {**fields, "updated_at": utcnow()}
        return self.collection.find_one_and_update(
            {"_id": address_id, "customer_id": customer_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
            session=session,
        )

    def delete_owned(self, address_id: ObjectId, customer_id: ObjectId) -> bool:
        result = self.collection.delete_one({"_id": address_id, "customer_id": customer_id})
        return result.deleted_count > 0

    def clear_default(self, customer_id: ObjectId, session=None) -> int:
        result = self.collection.update_many(
            {"customer_id": customer_id, "is_default": True},
            {"$set": {"is_default": False, "updated_at": utcnow()}},
            session=session,
        )
        return result.modified_count


class ShippingInfoRepository(MongoRepository):
    pass


class OrderRepository(MongoRepository):
    def exists(self, field: str, value: str, session=None) -> bool:
        return self.collection.count_documents({field: value}, limit=1, session=session) > 0

    def find_many(self, order_ids: Iterable[ObjectId], session=None) -> List[Dict]:
        return list(self.collection.find({"_id": {"$in": list(order_ids)}}, session=session))

    def mark_paid(self, order_ids: Iterable[ObjectId], session=None) -> int:
        result = self.collection.update_many(
            {"_id": {"$in": list(order_ids)}},
            {"$set": {"payment_status": "paid", "updated_at": utcnow()}},
            session=session,
        )
        return result.modified_count

    def delete_many(self, order_ids: Iterable[ObjectId], session=None) -> int:
        result = self.collection.delete_many({"_id": {"$in": list(order_ids)}}, session=session)
        return result.deleted_count

    def list_by_customer(self, customer_id: ObjectId) -> List[Dict]:
        return list(self.collection.find({"customer_id": customer_id}).sort("created_at", DESCENDING))

    def list_by_products(self, product_ids: Iterable[ObjectId]) -> List[Dict]:
        return list(
            self.collection.find({"product_id": {"$in": list(product_ids)}}).sort(
                "created_at", DESCENDING
            )
        )

    def count_by_customer(self, customer_id: ObjectId, order_status: Optional[str] = None) -> int:
        query: Dict[str, object] = {"customer_id": customer_id}
        if order_status:
            query["order_status"] = order_status
        return self.collection.count_documents(query)

    def set_order_status(self, order_id: ObjectId, order_status: str) -> Optional[Dict]:
        return self.collection.find_one_and_update(
            {"_id": order_id},
            {"$set": {"order_status": order_status, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    def status_counts(self, product_ids: Iterable[ObjectId]) -> Dict[str, int]:
        pipeline = [
            {"$match": {"product_id": {"$in": list(product_ids)}}},
            {"$group": {"_id": "$order_status", "count": {"$sum": 1}}},
        ]
        return {entry["_id"]: entry["count"] for entry in self.collection.aggregate(pipeline)}


class CartRepository(MongoRepository):
    def list_by_customer(self, customer_id: ObjectId, session=None) -> List[Dict]:
        return list(self.collection.find({"customer_id": customer_id}, session=session))

    def find_by_title(self, customer_id: ObjectId, title: str) -> Optional[Dict]:
        return self.collection.find_one({"customer_id": customer_id, "title": title})

    def add_products(self, cart_id: ObjectId, product_ids: List[ObjectId]) -> Optional[Dict]:
        return self.collection.find_one_and_update(
            {"_id": cart_id},
            {"$addToSet": {"product_ids": {"$each": product_ids}}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    def replace_products(self, cart_id: ObjectId, product_ids: List[ObjectId], session=None) -> None:
        self.collection.update_one(
            {"_id": cart_id},
            {"$set": {"product_ids": product_ids, "updated_at": utcnow()}},
            session=session,
        )

    def delete_owned(self, cart_id: ObjectId, customer_id: ObjectId) -> bool:
        result = self.collection.delete_one({"_id": cart_id, "customer_id": customer_id})
        return result.deleted_count > 0


class SellerNotificationRepository(MongoRepository):
    def list_by_seller(self, seller_id: ObjectId) -> List[Dict]:
        return list(
            self.collection.find({"seller_id": seller_id}).sort(
                [("created_at", DESCENDING), ("_id", DESCENDING)]
            )
        )


class RecentActivityRepository(MongoRepository):
    def list_by_customer(self, customer_id: ObjectId) -> List[Dict]:
        return list(
            self.collection.find({"customer_id": customer_id}).sort(
                [("created_at", DESCENDING), ("_id", DESCENDING)]
            )
        )


class ProvisionalCheckoutRepository(MongoRepository):
    pass
