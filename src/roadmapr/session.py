"""The view session: one loaded roadmap, its drag gesture and its sync.

Local changes are applied immediately and committed to the backend in the
background. Fetches are tagged with a request number so a slow answer to an
older request never overwrites a newer one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from roadmapr.drag import DragSession, DragState, reschedule
from roadmapr.errors import NotFound, RoadmapError, Unauthorized
from roadmapr.models import Roadmap
from roadmapr.persistence import RoadmapBackend
from roadmapr.projection import SectionRow, project

log = logging.getLogger(__name__)


class RoadmapSession:
    """Owns the in-memory roadmap and drag state for one open view.

    ``on_auth_required`` and ``on_not_found`` are how the host learns it
    must prompt for a password or close the view. When a callback is not
    set the corresponding error is raised instead.

    ``identifier`` and ``password`` always describe the loaded ``roadmap``;
    a fetch in flight (or one that failed) only changes
    ``requested_identifier``. Commits are sent in the order they were made.
    """

    def __init__(
        self,
        backend: RoadmapBackend,
        *,
        editing: bool = False,
        on_auth_required: Callable[[], None] | None = None,
        on_not_found: Callable[[], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ):
        self.backend = backend
        self.editing = editing
        self.on_auth_required = on_auth_required
        self.on_not_found = on_not_found
        self.on_error = on_error

        self.identifier: str | None = None
        self.password: str | None = None
        self.roadmap: Roadmap | None = None
        self.requested_identifier: str | None = None
        self.drag = DragSession()

        self._request_seq = 0
        self._pending: set[asyncio.Task] = set()
        self._last_commit: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_roadmap(
        self, identifier: str, password: str | None = None
    ) -> Roadmap | None:
        """Fetch *identifier* and make it the session's roadmap.

        Returns None when the fetch was superseded or ended in a signalled
        Unauthorized/NotFound; the current roadmap is left as it was.
        """
        self._request_seq += 1
        token = self._request_seq
        if identifier != self.requested_identifier:
            self.drag.drag_end()
        self.requested_identifier = identifier

        try:
            roadmap = await self.backend.fetch(identifier, password)
        except Unauthorized:
            if self._is_stale(token):
                return None
            log.info("Roadmap %s needs a password", identifier)
            self._signal(self.on_auth_required, Unauthorized(identifier))
            return None
        except NotFound:
            if self._is_stale(token):
                return None
            log.info("Roadmap %s not found", identifier)
            self._signal(self.on_not_found, NotFound(identifier))
            return None
        except RoadmapError:
            if self._is_stale(token):
                return None
            raise

        if self._is_stale(token):
            return None
        self.roadmap = roadmap
        self.identifier = identifier
        self.password = password
        log.info("Loaded roadmap %s (%d items)", identifier, len(roadmap.items))
        return roadmap

    async def provide_password(self, password: str) -> Roadmap | None:
        """Retry the most recent fetch with new credentials."""
        if self.requested_identifier is None:
            raise RuntimeError("No roadmap requested yet")
        return await self.load_roadmap(self.requested_identifier, password)

    def _is_stale(self, token: int) -> bool:
        if token != self._request_seq:
            log.debug("Discarding result of superseded fetch #%d", token)
            return True
        return False

    @staticmethod
    def _signal(callback: Callable[[], None] | None, error: RoadmapError) -> None:
        if callback is None:
            raise error
        callback()

    def close(self) -> None:
        self._request_seq += 1
        self.drag.drag_end()
        self.roadmap = None
        self.identifier = None
        self.password = None
        self.requested_identifier = None

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def projection(self, reference: datetime, window_size: int) -> list[SectionRow]:
        if self.roadmap is None:
            return []
        return project(self.roadmap, reference, window_size)

    def current_drag_state(self) -> DragState:
        return self.drag.state

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def drag_start(self, index: int, origin_month: datetime) -> bool:
        item_id = None
        if self.roadmap is not None and 0 <= index < len(self.roadmap.items):
            item_id = self.roadmap.items[index].id
        return self.drag.drag_start(index, origin_month, self.editing, item_id)

    def drag_enter(self, month: datetime) -> None:
        self.drag.drag_enter(month)

    def drag_leave(self) -> None:
        self.drag.drag_leave()

    def drag_end(self) -> None:
        self.drag.drag_end()

    def drop(self) -> bool:
        """Finish the gesture; returns True when a change was committed."""
        if self.roadmap is None:
            self.drag.drag_end()
            return False
        result = self.drag.drop(self.roadmap)
        if result is None:
            return False
        self.apply(result)
        return True

    def request_reschedule(
        self, index: int, from_month: datetime, to_month: datetime
    ) -> bool:
        if self.roadmap is None:
            return False
        result = reschedule(self.roadmap, index, from_month, to_month)
        if result is None:
            return False
        self.apply(result)
        return True

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def apply(self, roadmap: Roadmap) -> asyncio.Task:
        """Replace the local roadmap now and persist it in the background.

        The commit goes to the identifier the current roadmap was loaded
        from and waits for any earlier commit to finish first. A failed
        commit does not roll the local change back.
        """
        if self.identifier is None:
            raise RuntimeError("No roadmap loaded")
        self.roadmap = roadmap
        task = asyncio.get_running_loop().create_task(
            self._commit(self.identifier, roadmap, self.password, self._last_commit)
        )
        self._last_commit = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _commit(
        self,
        identifier: str,
        roadmap: Roadmap,
        password: str | None,
        previous: asyncio.Task | None = None,
    ) -> None:
        if previous is not None and not previous.done():
            # Errors of the earlier commit are reported by its own task.
            await asyncio.wait([previous])
        try:
            await self.backend.commit(identifier, roadmap, password)
        except Unauthorized:
            log.info("Commit of %s rejected, password required", identifier)
            self._signal(self.on_auth_required, Unauthorized(identifier))
        except RoadmapError as e:
            log.error("Commit of %s failed: %s", identifier, e)
            if self.on_error is None:
                raise
            self.on_error(e)
        else:
            log.info("Committed roadmap %s", identifier)

    @property
    def has_pending_commits(self) -> bool:
        return bool(self._pending)

    async def flush(self) -> None:
        """Wait for outstanding commits; unhandled failures are raised here."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
