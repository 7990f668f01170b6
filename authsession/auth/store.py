"""
Credential Store
================

Holds principals and outstanding refresh-token records. Business logic only
talks to the ``CredentialStore`` contract; the backing engine (in-memory for
tests and development, SQL for production) is chosen once at construction
time by ``build_store``.

All operations are atomic with respect to each other. Email uniqueness is
enforced inside ``insert_principal`` so two concurrent registrations of the
same email cannot both succeed.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from ..config import Settings
from ..models import Principal, RenewalCredentialRecord, utcnow
from .errors import DuplicateEmailError

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Contract shared by every store backend."""

    def insert_principal(self, principal: Principal) -> Principal:
        """Store ``principal``; raise ``DuplicateEmailError`` if the email is taken."""

    def find_principal_by_id(self, principal_id: str) -> Optional[Principal]:
        ...

    def find_principal_by_email(self, email: str) -> Optional[Principal]:
        """Case-sensitive exact match."""

    def list_principals(self) -> List[Principal]:
        ...

    def delete_principal(self, principal_id: str) -> bool:
        """Remove the principal and all of its refresh records."""

    def insert_renewal_record(self, record: RenewalCredentialRecord) -> RenewalCredentialRecord:
        ...

    def find_renewal_record_by_token(self, token: str) -> Optional[RenewalCredentialRecord]:
        ...

    def delete_renewal_record(self, token: str) -> bool:
        """Return True if a record was removed."""

    def delete_all_renewal_records_for_principal(self, principal_id: str) -> int:
        """Return the number of records removed."""

    def replace_renewal_record(self, old_token: str, record: RenewalCredentialRecord) -> bool:
        """Atomically swap ``old_token`` for ``record``. False if ``old_token`` is gone."""

    def purge_expired_renewal_records(self, now: Optional[datetime] = None) -> int:
        """Delete records whose expiry has passed. Return the number removed."""


class InMemoryCredentialStore:
    """
    Dict-backed credential store guarded by a single lock.

    Records are copied on the way in and out so callers can never mutate
    store state without going through the contract.
    """

    def __init__(self):
        self._principals: Dict[str, Principal] = {}
        self._principal_ids_by_email: Dict[str, str] = {}
        self._renewal_records: Dict[str, RenewalCredentialRecord] = {}
        self._lock = threading.RLock()

    # -- principals ----------------------------------------------------------

    def insert_principal(self, principal: Principal) -> Principal:
        with self._lock:
            if principal.email in self._principal_ids_by_email:
                raise DuplicateEmailError()
            self._principals[principal.id] = principal.model_copy()
            self._principal_ids_by_email[principal.email] = principal.id
            return principal.model_copy()

    def find_principal_by_id(self, principal_id: str) -> Optional[Principal]:
        with self._lock:
            principal = self._principals.get(principal_id)
            return principal.model_copy() if principal else None

    def find_principal_by_email(self, email: str) -> Optional[Principal]:
        with self._lock:
            principal_id = self._principal_ids_by_email.get(email)
            if principal_id is None:
                return None
            return self._principals[principal_id].model_copy()

    def list_principals(self) -> List[Principal]:
        with self._lock:
            return sorted(
                (p.model_copy() for p in self._principals.values()),
                key=lambda p: p.created_at,
            )

    def delete_principal(self, principal_id: str) -> bool:
        with self._lock:
            principal = self._principals.pop(principal_id, None)
            if principal is None:
                return False
            self._principal_ids_by_email.pop(principal.email, None)
            self.delete_all_renewal_records_for_principal(principal_id)
            return True

    # -- refresh records -----------------------------------------------------

    def insert_renewal_record(self, record: RenewalCredentialRecord) -> RenewalCredentialRecord:
        with self._lock:
            self._renewal_records[record.token] = record.model_copy()
            return record.model_copy()

    def find_renewal_record_by_token(self, token: str) -> Optional[RenewalCredentialRecord]:
        with self._lock:
            record = self._renewal_records.get(token)
            return record.model_copy() if record else None

    def delete_renewal_record(self, token: str) -> bool:
        with self._lock:
            return self._renewal_records.pop(token, None) is not None

    def delete_all_renewal_records_for_principal(self, principal_id: str) -> int:
        with self._lock:
            tokens = [
                token for token, record in self._renewal_records.items()
                if record.principal_id == principal_id
            ]
            for token in tokens:
                del self._renewal_records[token]
            return len(tokens)

    def replace_renewal_record(self, old_token: str, record: RenewalCredentialRecord) -> bool:
        with self._lock:
            if self._renewal_records.pop(old_token, None) is None:
                return False
            self._renewal_records[record.token] = record.model_copy()
            return True

    def purge_expired_renewal_records(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        with self._lock:
            expired = [
                token for token, record in self._renewal_records.items()
                if record.is_expired(now)
            ]
            for token in expired:
                del self._renewal_records[token]
            return len(expired)


def build_store(settings: Settings) -> CredentialStore:
    """Create the store backend selected by ``STORE_BACKEND``."""
    if settings.STORE_BACKEND == "sql":
        from .sql_store import SQLCredentialStore

        logger.info("Using SQL credential store")
        return SQLCredentialStore(settings.DATABASE_URL)

    logger.info("Using in-memory credential store")
    return InMemoryCredentialStore()


__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "build_store",
]
