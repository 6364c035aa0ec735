"""
Local State Store

Per-user JSON documents the storefront keeps between requests (the server
side of what a browser would hold in local storage). Keys are namespaced by
the authenticated user id so a shared device never leaks one account's cart
into another. Concurrent sessions of the same user race; last write wins.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from sqlalchemy.orm import Session

from ..models.local_state import LocalStateEntry

logger = logging.getLogger(__name__)

# Well-known keys read by the confirmation step
CART_KEY = "rentalCart"
CART_TOTAL_KEY = "rentalCartTotal"
SCHEDULE_KEY = "rentalSchedule"
SELECTED_ITEMS_KEY = "selectedItems"
SELECTED_PACKAGE_KEY = "selectedPackage"
BOOKING_FORM_KEY = "bookingFormData"


class LocalStateStore:
    """
    Short-lived sessions per operation, so long-lived cart stores can
    persist from event callbacks as well as from requests.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _find(self, db: Session, owner_id: str, key: str) -> Optional[LocalStateEntry]:
        return db.query(LocalStateEntry).filter(
            LocalStateEntry.owner_id == owner_id,
            LocalStateEntry.key == key
        ).first()

    def get_json(self, owner_id: str, key: str, default: Any = None) -> Any:
        """
        Read a document. A corrupt document is dropped and treated as missing.
        """
        db = self.session_factory()
        try:
            entry = self._find(db, owner_id, key)
            if entry is None:
                return default
            try:
                return json.loads(entry.value)
            except (TypeError, ValueError) as e:
                logger.error(f"Corrupt local state {key} for {owner_id}: {e}")
                db.delete(entry)
                db.commit()
                return default
        finally:
            db.close()

    def set_json(self, owner_id: str, key: str, value: Any) -> None:
        db = self.session_factory()
        try:
            payload = json.dumps(value, ensure_ascii=False, default=str)
            entry = self._find(db, owner_id, key)
            if entry is None:
                db.add(LocalStateEntry(owner_id=owner_id, key=key, value=payload))
            else:
                entry.value = payload
                entry.updated_at = datetime.utcnow()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def remove(self, owner_id: str, key: str) -> bool:
        """Delete a document. Returns True if one existed."""
        db = self.session_factory()
        try:
            count = db.query(LocalStateEntry).filter(
                LocalStateEntry.owner_id == owner_id,
                LocalStateEntry.key == key
            ).delete(synchronize_session=False)
            db.commit()
            return count > 0
        finally:
            db.close()

    def has(self, owner_id: str, key: str) -> bool:
        db = self.session_factory()
        try:
            return self._find(db, owner_id, key) is not None
        finally:
            db.close()

    def keys_for(self, owner_id: str) -> List[str]:
        db = self.session_factory()
        try:
            rows = db.query(LocalStateEntry.key).filter(
                LocalStateEntry.owner_id == owner_id
            ).order_by(LocalStateEntry.key).all()
            return [row[0] for row in rows]
        finally:
            db.close()
