"""
Result cache for parsed pairing documents.

Keys are derived from document content (SHA-256 of the bytes plus the
requested limit), never from file name or size.  For one key at most one
computation runs at a time; callers that arrive while it runs wait for it
and receive the same result, or the same exception.  Failed computations
are not cached.

An optional DocumentStore keeps results across restarts in the
parsed_documents table.
"""

import hashlib
import json
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from models import ParsedDocument, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


def document_key(data: bytes, limit: Optional[int] = None) -> str:
    digest = hashlib.sha256(data).hexdigest()
    return f"{digest}:{'all' if limit is None else limit}"


# ==================== PERSISTENT STORE ====================

class DocumentStore:
    """Reads and writes ParsedDocument rows through a session factory."""

    def __init__(self, session_factory: sessionmaker, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.session_factory = session_factory
        self.ttl_seconds = ttl_seconds

    def load(self, key: str) -> Optional[dict]:
        session = self.session_factory()
        try:
            doc = session.execute(
                select(ParsedDocument).filter_by(cache_key=key)
            ).scalar_one_or_none()
            if doc is None:
                return None
            if utcnow() - doc.created_at > timedelta(seconds=self.ttl_seconds):
                session.delete(doc)
                session.commit()
                logger.info("Expired stored result for %s", key[:16])
                return None
            return doc.result
        finally:
            session.close()

    def save(self, key: str, source_name: Optional[str], result: dict) -> None:
        session = self.session_factory()
        try:
            doc = session.execute(
                select(ParsedDocument).filter_by(cache_key=key)
            ).scalar_one_or_none()
            if doc is None:
                doc = ParsedDocument(cache_key=key)
                session.add(doc)
            doc.source_name = source_name
            doc.pairing_count = result.get("total_pairings", 0)
            doc.result_json = json.dumps(result)
            doc.created_at = utcnow()
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("Failed to store parse result for %s", key[:16])
        finally:
            session.close()


# ==================== IN-MEMORY CACHE ====================

@dataclass
class _Entry:
    future: Future
    created: float


class PairingCache:
    """
    Compute-once, share-result cache.

    Usage:
        result, cached = cache.get_or_compute(key, lambda: parse(...))
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        store: Optional[DocumentStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.store = store
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_expired(self, now: float) -> None:
        # caller holds self._lock; in-flight entries are left for their waiters
        stale = [
            k for k, e in self._entries.items()
            if e.future.done() and now - e.created > self.ttl_seconds
        ]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Evicted %d expired cache entries", len(stale))

    def get_or_compute(
        self,
        key: str,
        compute: Callable[[], dict],
        source_name: Optional[str] = None,
    ) -> Tuple[dict, bool]:
        """Return (result, served_from_cache)."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry.created > self.ttl_seconds:
                del self._entries[key]
                entry = None
            owner = entry is None
            if owner:
                self._evict_expired(now)
                entry = _Entry(future=Future(), created=now)
                self._entries[key] = entry

        if not owner:
            return entry.future.result(), True

        try:
            value = self.store.load(key) if self.store else None
            from_store = value is not None
            if value is None:
                value = compute()
                if self.store:
                    self.store.save(key, source_name, value)
        except Exception as e:
            with self._lock:
                if self._entries.get(key) is entry:
                    del self._entries[key]
            entry.future.set_exception(e)
            raise

        entry.future.set_result(value)
        return value, from_store
