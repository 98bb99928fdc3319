# services/business_logic/draft_store.py
# Persists each session's in-progress bill to MongoDB.
# In-process cache means the engine never waits on the DB between commands.

from datetime import datetime, timezone

from shared.logging.logger import get_logger

logger = get_logger("draft_store")


class DraftStore:

    def __init__(self, db=None, use_db: bool = True):
        # session_id -> list of cart line docs
        self._cache: dict = {}
        self._db     = db
        self._use_db = use_db

    def _get_db(self):
        """
        Lazy DB connection, only on first use.
        If MongoDB is not running, billing still works from memory.
        """
        if not self._use_db:
            return None
        if self._db is None:
            try:
                from shared.database.mongo_client import get_db
                self._db = get_db()
            except Exception as e:
                logger.warning(f"[DraftStore] MongoDB unavailable, memory-only mode: {e}")
                self._db = False  # tried and failed, don't retry
        return self._db if self._db is not False else None

    # ── Load ──────────────────────────────────────────────────────────────────

    def load(self, session_id: str):
        """Cache first, then MongoDB, then an empty cart."""
        from services.business_logic.cart_engine import Cart

        if session_id in self._cache:
            return Cart.from_doc(self._cache[session_id])

        db = self._get_db()
        if db is not None:
            try:
                doc = db.billing_drafts.find_one({"session_id": session_id})
                if doc:
                    self._cache[session_id] = doc.get("lines") or []
                    return Cart.from_doc(self._cache[session_id])
            except Exception as e:
                logger.warning(f"[DraftStore] Could not load draft: {e}",
                               extra={"session_id": session_id})

        return Cart()

    # ── Save ──────────────────────────────────────────────────────────────────

    def save(self, session_id: str, cart) -> None:
        """Always updates the cache; MongoDB failures are logged, not raised."""
        lines = cart.to_doc()
        self._cache[session_id] = lines

        db = self._get_db()
        if db is not None:
            try:
                db.billing_drafts.update_one(
                    {"session_id": session_id},
                    {"$set": {
                        "session_id": session_id,
                        "lines":      lines,
                        "total":      cart.total,
                        "updated_at": datetime.now(timezone.utc),
                    }},
                    upsert=True,
                )
            except Exception as e:
                logger.warning(f"[DraftStore] Could not save draft: {e}",
                               extra={"session_id": session_id})

    def clear(self, session_id: str) -> None:
        self._cache.pop(session_id, None)
        db = self._get_db()
        if db is not None:
            try:
                db.billing_drafts.delete_one({"session_id": session_id})
            except Exception as e:
                logger.warning(f"[DraftStore] Could not clear draft: {e}",
                               extra={"session_id": session_id})
