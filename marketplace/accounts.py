import logging
from typing import Dict, Tuple

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from marketplace.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from marketplace.schemas import email_regex
from marketplace.security import check_password, hash_password
from marketplace.utils import normalize_email, utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _clean(payload: Dict, key: str) -> str:
    return str(payload.get(key) or "").strip()


def _credentials(payload) -> Tuple[str, str]:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    email = normalize_email(payload.get("email"))
    password = str(payload.get("password") or "")
    if not email or not email_regex.match(email):
        raise ValidationError("Valid email is required")
    return email, password


class AccountService:
    """Customer and seller registration, login and profile lookups."""

    def __init__(self, store):
        self.store = store

    def _repository(self, role: str):
        return self.store.customers if role == "customer" else self.store.sellers

    def _create(self, role: str, document: Dict) -> Dict:
        repository = self._repository(role)
        if repository.find_by_email(document["email"]):
            raise ConflictError("Email already exists")
        try:
            created = repository.insert(document)
        except DuplicateKeyError:
            raise ConflictError("Email already exists")
        logger.info("Registered %s %s", role, created["_id"])
        return created

    def register_customer(self, payload) -> Dict:
        email, password = _credentials(payload)
        first_name = _clean(payload, "firstName")
        last_name = _clean(payload, "lastName")
        if not first_name or not last_name:
            raise ValidationError("First name and last name are required")
        if len(password.strip()) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        now = utcnow()
        return self._create(
            "customer",
            {
                "first_name": first_name,
                "last_name": last_name,
                "email": email,
                "password": hash_password(password),
                "phone": _clean(payload, "phone"),
                "bio": _clean(payload, "bio"),
                "last_notification_seen_at": None,
                "last_notification_seen_id": None,
                "created_at": now,
                "updated_at": now,
            },
        )

    def register_seller(self, payload) -> Dict:
        email, password = _credentials(payload)
        name = _clean(payload, "name")
        if not name:
            raise ValidationError("Name is required")
        if not password.strip():
            raise ValidationError("Password is required")

        now = utcnow()
        return self._create(
            "seller",
            {
                "name": name,
                "email": email,
                "password": hash_password(password),
                "phone": _clean(payload, "phone"),
                "last_notification_seen_at": None,
                "last_notification_seen_id": None,
                "created_at": now,
                "updated_at": now,
            },
        )

    def login(self, role: str, payload) -> Dict:
        email, password = _credentials(payload)
        if not password:
            raise ValidationError("Password is required")

        account = self._repository(role).find_by_email(email)
        if not account or not check_password(password, account.get("password")):
            logger.info("Failed %s login for %s", role, email)
            raise AuthorizationError("Invalid credentials")
        return account

    def profile(self, role: str, account_id: ObjectId) -> Dict:
        account = self._repository(role).find_by_id(account_id)
        if not account:
            raise NotFoundError(f"{role.capitalize()} not found")
        return account
