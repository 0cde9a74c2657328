"""In-process registry of open wizard sessions."""
from __future__ import annotations
import logging
import threading
import time
import uuid
from dataclasses import dataclass

from ..exceptions import WizardClosed
from .engine import WizardEngine

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 3600.0


@dataclass
class _Entry:
    owner: str
    engine: WizardEngine
    created_at: float


class WizardRegistry:
    """Maps wizard ids to engines owned by a token subject.

    Engines are process-local, so the service runs a single worker process
    (see gunicorn.conf.py). Wizards older than `max_age` seconds are closed
    and dropped on the next add or lookup.
    """

    def __init__(self, max_age: float = DEFAULT_MAX_AGE):
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self.max_age = max_age

    def add(self, owner: str, engine: WizardEngine) -> str:
        wizard_id = uuid.uuid4().hex
        with self._lock:
            self._prune()
            self._entries[wizard_id] = _Entry(owner, engine, time.monotonic())
        return wizard_id

    def get(self, wizard_id: str, owner: str) -> WizardEngine:
        """Return the caller's engine.

        Raises:
            KeyError: If no wizard with this id belongs to the owner
            WizardClosed: If the wizard was closed, finished or expired
        """
        with self._lock:
            entry = self._entries.get(wizard_id)
            if entry is not None and entry.owner == owner and self._expired(entry, time.monotonic()):
                logger.info("Wizard %s for realm %s expired", entry.engine.alias, entry.engine.tenant)
                entry.engine.close()
            self._prune()
        if entry is None or entry.owner != owner:
            raise KeyError(wizard_id)
        if entry.engine.closed:
            self.discard(wizard_id)
            raise WizardClosed("Wizard session is closed")
        return entry.engine

    def close(self, wizard_id: str, owner: str) -> None:
        """Close and forget a wizard. Unknown or already closed ids are ignored."""
        with self._lock:
            entry = self._entries.get(wizard_id)
            if entry is None or entry.owner != owner:
                return
            del self._entries[wizard_id]
        entry.engine.close()

    def discard(self, wizard_id: str) -> None:
        with self._lock:
            self._entries.pop(wizard_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.created_at > self.max_age

    def _prune(self) -> None:
        now = time.monotonic()
        for wizard_id, entry in list(self._entries.items()):
            expired = self._expired(entry, now)
            if expired:
                entry.engine.close()
            if expired or entry.engine.closed:
                del self._entries[wizard_id]
