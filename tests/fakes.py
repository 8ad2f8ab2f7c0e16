"""In-memory stand-ins for MongoDB and the payment gateway.

``FakeCollection`` covers the slice of the pymongo collection API the
repositories use, so the real repository classes run unchanged on top of it.
"""

import copy

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from marketplace.errors import ExternalServiceError
from marketplace.gateway import GatewaySession
from marketplace.storage import MongoStore

UNIQUE_FIELDS = {
    "customers": ("email",),
    "sellers": ("email",),
    "orders": ("order_id", "transaction_id"),
}


class InsertResult:
    def __init__(self, inserted_id):
        self.inserted_id = inserted_id


class WriteResult:
    def __init__(self, count):
        self.modified_count = count
        self.deleted_count = count


def _matches(document, query):
    for key, expected in (query or {}).items():
        actual = document.get(key)
        if isinstance(expected, dict) and "$in" in expected:
            if actual not in expected["$in"]:
                return False
        elif actual != expected:
            return False
    return True


def _sort_key(value):
    return (value is not None, value)


class FakeCursor:
    def __init__(self, documents):
        self.documents = documents

    def sort(self, key_or_list, direction=1):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        for key, order in reversed(keys):
            self.documents.sort(key=lambda doc: _sort_key(doc.get(key)), reverse=order < 0)
        return self

    def __iter__(self):
        return iter(self.documents)


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.documents = []

    def _check_unique(self, document, ignore=None):
        for field in UNIQUE_FIELDS.get(self.name, ()):
            value = document.get(field)
            if value is None:
                continue
            for existing in self.documents:
                if existing is not ignore and existing.get(field) == value:
                    raise DuplicateKeyError(f"E11000 duplicate key {self.name}.{field}: {value}")

    def _apply(self, document, update):
        for field, value in update.get("$set", {}).items():
            document[field] = value
        for field, value in update.get("$addToSet", {}).items():
            items = value["$each"] if isinstance(value, dict) and "$each" in value else [value]
            current = document.setdefault(field, [])
            for item in items:
                if item not in current:
                    current.append(item)

    def insert_one(self, document, session=None):
        document.setdefault("_id", ObjectId())
        self._check_unique(document)
        self.documents.append(copy.deepcopy(document))
        return InsertResult(document["_id"])

    def find(self, query=None, projection=None, session=None):
        return FakeCursor([copy.deepcopy(doc) for doc in self.documents if _matches(doc, query)])

    def find_one(self, query=None, session=None):
        for document in self.documents:
            if _matches(document, query):
                return copy.deepcopy(document)
        return None

    def count_documents(self, query, limit=0, session=None):
        count = sum(1 for doc in self.documents if _matches(doc, query))
        return min(count, limit) if limit else count

    def find_one_and_update(self, query, update, return_document=ReturnDocument.BEFORE, session=None):
        for document in self.documents:
            if _matches(document, query):
                before = copy.deepcopy(document)
                self._apply(document, update)
                return copy.deepcopy(document) if return_document == ReturnDocument.AFTER else before
        return None

    def update_one(self, query, update, session=None):
        for document in self.documents:
            if _matches(document, query):
                self._apply(document, update)
                return WriteResult(1)
        return WriteResult(0)

    def update_many(self, query, update, session=None):
        matched = [doc for doc in self.documents if _matches(doc, query)]
        for document in matched:
            self._apply(document, update)
        return WriteResult(len(matched))

    def delete_one(self, query, session=None):
        for document in self.documents:
            if _matches(document, query):
                self.documents.remove(document)
                return WriteResult(1)
        return WriteResult(0)

    def delete_many(self, query, session=None):
        kept = [doc for doc in self.documents if not _matches(doc, query)]
        deleted = len(self.documents) - len(kept)
        self.documents = kept
        return WriteResult(deleted)

    def aggregate(self, pipeline):
        documents = list(self.documents)
        for stage in pipeline:
            if "$match" in stage:
                documents = [doc for doc in documents if _matches(doc, stage["$match"])]
            elif "$group" in stage:
                field = stage["$group"]["_id"].lstrip("$")
                counts = {}
                for doc in documents:
                    counts[doc.get(field)] = counts.get(doc.get(field), 0) + 1
                documents = [{"_id": key, "count": count} for key, count in counts.items()]
        return iter(documents)

    def create_index(self, *args, **kwargs):
        return None


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getattr__(self, name):
        if name.startswith("__"):
            raise AttributeError(name)
        collections = self.__dict__["collections"]
        if name not in collections:
            collections[name] = FakeCollection(name)
        return collections[name]


class FakeSession:
    pass


class InMemoryStore(MongoStore):
    """MongoStore over FakeDatabase; transactions snapshot every collection
    and restore it when the callback raises."""

    def __init__(self):
        super().__init__(client=None, database=FakeDatabase())
        self.transactions = 0

    def run_transaction(self, callback):
        snapshot = {
            name: copy.deepcopy(collection.documents)
            for name, collection in self.database.collections.items()
        }
        try:
            result = callback(FakeSession())
        except Exception:
            for name, collection in self.database.collections.items():
                collection.documents = snapshot.get(name, [])
            raise
        self.transactions += 1
        return result

    def all(self, collection_name):
        return getattr(self.database, collection_name).documents


class FakeGateway:
    def __init__(self, payment_url="https://sandbox.sslcommerz.com/pay/abc", error=None):
        self.payment_url = payment_url
        self.error = error
        self.calls = []

    def init(self, payment_details):
        self.calls.append(payment_details)
        if self.error is not None:
            raise self.error
        return GatewaySession(payment_url=self.payment_url, session_key="SESSION-KEY", raw={})

    def fail_with(self, details):
        self.error = ExternalServiceError(details=details)
