"""Drag-and-drop rescheduling of items between month cells."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from roadmapr.models import DateField, Roadmap, parse_date
from roadmapr.months import month_start, same_month

log = logging.getLogger(__name__)


class DragPhase(enum.StrEnum):
    IDLE = "idle"
    DRAGGING = "dragging"
    TARGET_HOVER = "target_hover"


@dataclass(frozen=True)
class DragState:
    """Snapshot of the gesture in progress, for highlighting drop zones."""

    dragging_index: int | None = None
    drop_target_month: datetime | None = None
    prev_target_month: datetime | None = None  # month of the cell the drag began in
    item_id: str | None = None

    @property
    def phase(self) -> DragPhase:
        if self.dragging_index is None:
            return DragPhase.IDLE
        if self.drop_target_month is None:
            return DragPhase.DRAGGING
        return DragPhase.TARGET_HOVER


IDLE = DragState()


def _moved_date(value: str, to_month: datetime) -> str:
    """Move *value* to the first of *to_month*, keeping its time of day and
    its date-only or datetime shape."""
    original = parse_date(value)
    target = month_start(to_month)
    moved = original.replace(year=target.year, month=target.month, day=1)
    if len(value.strip()) == 10:
        return moved.date().isoformat()
    if datetime.fromisoformat(value).tzinfo is not None:
        return moved.replace(tzinfo=timezone.utc).isoformat()
    return moved.isoformat()


def reschedule(
    roadmap: Roadmap,
    index: int,
    from_month: datetime,
    to_month: datetime,
) -> Roadmap | None:
    """Return a new roadmap with item *index* moved from one month to another.

    Every date field of the item that falls in *from_month* and not already
    in *to_month* is moved, so two stages due in the same origin month move
    together. Returns None when nothing changes.
    """
    if not 0 <= index < len(roadmap.items):
        return None
    item = roadmap.items[index]

    changed = False
    fields: list[DateField] = []
    for df in item.date_fields:
        when = df.when
        if same_month(when, from_month) and not same_month(when, to_month):
            fields.append(replace(df, date=_moved_date(df.date, to_month)))
            changed = True
        else:
            fields.append(df)

    if not changed:
        return None

    items = list(roadmap.items)
    items[index] = replace(item, date_fields=fields)
    return replace(roadmap, items=items)


class DragSession:
    """Tracks one drag gesture at a time.

    Idle -> Dragging on drag_start (edit mode only), Dragging -> TargetHover
    on drag_enter, back to Dragging on drag_leave, and Idle again after
    drop or drag_end whatever the outcome.
    """

    def __init__(self) -> None:
        self._state = IDLE

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def phase(self) -> DragPhase:
        return self._state.phase

    def drag_start(
        self,
        index: int,
        origin_month: datetime,
        editing: bool,
        item_id: str | None = None,
    ) -> bool:
        if not editing:
            log.debug("Ignoring drag of item %d outside edit mode", index)
            return False
        if self._state.phase != DragPhase.IDLE:
            # A new gesture replaces the abandoned one.
            log.debug("Drag of item %d replaces drag of item %d", index, self._state.dragging_index)
        self._state = DragState(
            dragging_index=index,
            prev_target_month=month_start(origin_month),
            item_id=item_id,
        )
        return True

    def drag_enter(self, month: datetime) -> None:
        if self._state.phase == DragPhase.IDLE:
            return
        self._state = replace(self._state, drop_target_month=month_start(month))

    def drag_leave(self) -> None:
        if self._state.phase == DragPhase.TARGET_HOVER:
            self._state = replace(self._state, drop_target_month=None)

    def drag_end(self) -> None:
        self._state = IDLE

    def drop(self, roadmap: Roadmap) -> Roadmap | None:
        """Finish the gesture over the hovered month.

        Returns the rescheduled roadmap, or None when the drop changes
        nothing or no month is hovered. The session is idle afterwards
        either way.
        """
        state = self._state
        self._state = IDLE

        target = state.drop_target_month
        if state.dragging_index is None or target is None:
            return None

        index = state.dragging_index
        if state.item_id is not None:
            index = roadmap.index_of(state.item_id)
            if index is None:
                log.debug("Dragged item %s no longer exists", state.item_id)
                return None

        result = reschedule(roadmap, index, state.prev_target_month, target)
        if result is None:
            log.debug("Drop of item %d on %s is a no-op", index, target.strftime("%Y-%m"))
        return result
