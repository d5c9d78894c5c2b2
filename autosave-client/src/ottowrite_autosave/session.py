"""Editor-side autosave loop.

``AutosaveSession`` holds the latest editor state and the base hash (the
hash of the server content the edits started from). Edits schedule a
debounced save; only one save is in flight at a time and edits made during
a save trigger exactly one follow-up save.

A 409 freezes saving: the session enters ``conflict``, keeps recording
edits, and waits for ``resolve``. A server that cannot be reached puts the
session ``offline``; the unsaved state stays in memory and is retried on
the next edit, flush or ``network_online`` call.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .api_client import (
    AutosaveAPIClient,
    AutosaveConflict,
    AutosaveRejected,
    AutosaveUnavailable,
)
from .connectivity import ConnectivityMonitor
from .content_hash import compute_content_hash, extract_anchor_ids

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.0
RECONNECT_DELAY_SECONDS = 0.25


class AutosaveStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"
    SAVED = "saved"
    OFFLINE = "offline"
    ERROR = "error"
    CONFLICT = "conflict"


@dataclass
class EditorState:
    html: str = ""
    structure: list = field(default_factory=list)
    anchor_ids: list[str] = field(default_factory=list)
    word_count: int = 0

    def content_hash(self) -> str:
        # Anchors come from the html, as in the hash the server returns.
        return compute_content_hash(self.html, self.structure, extract_anchor_ids(self.html))


class AutosaveSession:
    """Debounced, single-flight autosave for one open document.

    Args:
        client: API client used for saves and conflict resolution.
        doc_id: Document being edited.
        base_hash: Hash returned when the document was loaded.
        state: Editor state matching ``base_hash``.
        debounce_seconds: Quiet period after the last edit before saving.
        monitor: Connectivity breaker; a fresh one by default.
        on_status_change: Called with each new ``AutosaveStatus``.
    """

    def __init__(
        self,
        client: AutosaveAPIClient,
        doc_id: str,
        base_hash: Optional[str],
        state: Optional[EditorState] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        monitor: Optional[ConnectivityMonitor] = None,
        on_status_change: Optional[Callable[["AutosaveStatus"], None]] = None,
    ) -> None:
        self.client = client
        self.doc_id = doc_id
        self.base_hash = base_hash
        self.state = state or EditorState()
        self.debounce_seconds = debounce_seconds
        self.monitor = monitor or ConnectivityMonitor()
        self._on_status_change = on_status_change

        self.status = AutosaveStatus.IDLE
        self.error: Optional[str] = None
        self.conflict: Optional[AutosaveConflict] = None

        self._timer: Optional[asyncio.Task] = None
        self._saving = False
        self._queued = False

    # ------------------------------------------------------------------
    # Editor-facing API
    # ------------------------------------------------------------------

    def update(
        self,
        html: Optional[str] = None,
        structure: Optional[list] = None,
        anchor_ids: Optional[list[str]] = None,
        word_count: Optional[int] = None,
    ) -> None:
        """Record an edit and schedule a save. Must be called inside a running loop."""
        if html is not None:
            self.state.html = html
        if structure is not None:
            self.state.structure = structure
        if anchor_ids is not None:
            self.state.anchor_ids = list(anchor_ids)
        if word_count is not None:
            self.state.word_count = word_count

        if self.status == AutosaveStatus.CONFLICT:
            return

        delay = self.debounce_seconds
        if self.status == AutosaveStatus.OFFLINE:
            delay = max(delay, self.monitor.retry_after())
        elif self.status != AutosaveStatus.SAVING:
            self._set_status(AutosaveStatus.PENDING)
        self._schedule(delay)

    async def flush(self) -> None:
        """Save now, skipping the debounce. Forces a probe when offline."""
        self._cancel_timer()
        self.monitor.mark_online()
        await self._run_save()

    def network_offline(self) -> None:
        """The host reported that the network went away."""
        if self.status != AutosaveStatus.CONFLICT:
            self._set_status(AutosaveStatus.OFFLINE)

    def network_online(self) -> None:
        """The host reported that the network is back: retry shortly."""
        self.monitor.mark_online()
        if self.status == AutosaveStatus.OFFLINE:
            self._set_status(AutosaveStatus.PENDING)
        if self.status != AutosaveStatus.CONFLICT:
            self._schedule(RECONNECT_DELAY_SECONDS)

    async def resolve(self, strategy: str) -> dict[str, Any]:
        """Settle the pending conflict with ``keep_local``, ``keep_server`` or ``keep_both``.

        The editor adopts the resolved content and the new base hash. A
        second conflict (the server moved again) replaces the pending one
        and is re-raised.
        """
        if self.conflict is None:
            raise RuntimeError("No autosave conflict to resolve")

        snapshot = copy.deepcopy(self.state)
        try:
            result = await self.client.resolve(
                self.doc_id,
                strategy,
                self.conflict.server_hash,
                snapshot.html,
                snapshot.structure,
                snapshot.anchor_ids,
            )
        except AutosaveConflict as exc:
            self.conflict = exc
            raise
        except AutosaveUnavailable:
            self.monitor.record_failure()
            raise

        self.monitor.record_success()
        self.state.html = result["html"]
        self.state.structure = result.get("structure") or []
        self.state.anchor_ids = extract_anchor_ids(self.state.html)
        self.state.word_count = result.get("word_count", self.state.word_count)
        self.base_hash = result["hash"]
        self.conflict = None
        self.error = None
        logger.info("Autosave conflict resolved", extra={"document_id": self.doc_id, "strategy": strategy})
        self._set_status(AutosaveStatus.SAVED)
        return result

    def close(self) -> None:
        """Cancel any scheduled save."""
        self._cancel_timer()

    # ------------------------------------------------------------------
    # Save loop
    # ------------------------------------------------------------------

    async def _run_save(self) -> None:
        if self.status == AutosaveStatus.CONFLICT:
            return

        if self._saving:
            self._queued = True
            return

        snapshot = copy.deepcopy(self.state)
        local_hash = snapshot.content_hash()
        if local_hash == self.base_hash:
            self._queued = False
            self._set_status(AutosaveStatus.SAVED)
            return

        if not self.monitor.allow_request():
            self._set_status(AutosaveStatus.OFFLINE)
            return

        self._saving = True
        self.error = None
        self._set_status(AutosaveStatus.SAVING)
        try:
            result = await self.client.autosave(
                self.doc_id,
                html=snapshot.html,
                structure=snapshot.structure,
                anchor_ids=snapshot.anchor_ids,
                word_count=snapshot.word_count,
                base_hash=self.base_hash,
            )
        except AutosaveConflict as exc:
            self.conflict = exc
            self._queued = False
            logger.info("Autosave conflict", extra={"document_id": self.doc_id})
            self._set_status(AutosaveStatus.CONFLICT)
        except AutosaveUnavailable as exc:
            self.monitor.record_failure()
            self.error = str(exc)
            self._queued = False
            logger.warning("Autosave offline, keeping changes locally", extra={"document_id": self.doc_id})
            self._set_status(AutosaveStatus.OFFLINE)
        except AutosaveRejected as exc:
            self.error = str(exc)
            self._queued = False
            logger.error("Autosave rejected: %s", exc, extra={"document_id": self.doc_id})
            self._set_status(AutosaveStatus.ERROR)
        else:
            self.monitor.record_success()
            self.base_hash = result["hash"]
            self._set_status(AutosaveStatus.SAVED)
        finally:
            self._saving = False

        if self._queued:
            self._queued = False
            await self._run_save()

    def _schedule(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._delayed_save(delay))

    async def _delayed_save(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # Detach first so a flush() during the save does not cancel it.
        self._timer = None
        await self._run_save()

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _set_status(self, status: AutosaveStatus) -> None:
        if status == self.status:
            return
        self.status = status
        if self._on_status_change is not None:
            self._on_status_change(status)
