"""MCP server for roadmapr: exposes roadmap tools to AI assistants."""

from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP

from roadmapr.errors import RoadmapError
from roadmapr.months import month_start, parse_month, same_month
from roadmapr.persistence import Store
from roadmapr.projection import window_for
from roadmapr.session import RoadmapSession

mcp = FastMCP(
    "roadmapr",
    instructions="""\
roadmapr keeps roadmaps: named documents of work items grouped into sections \
and placed in months by their date fields. An item can carry several date \
fields, one per stage (e.g. design, build), so it can show up in more than \
one month.

Key concepts:
- **Identifier**: each roadmap is addressed by an identifier such as "platform-2025".
- **Item number**: items are referenced by their position in the roadmap \
(the "index" in get_projection output). Numbers shift when items are removed.
- **Window**: get_projection shows 1, 3 or 4 months starting at a given month \
(viewport small, medium or large).
- **Moving**: move_item moves every date field of an item that falls in the \
source month to the first of the target month. Moving to the same month is a no-op.
- **Passwords**: protected roadmaps need the password argument on every call.

Typical workflow:
1. list_roadmaps to find an identifier
2. get_projection to see what is scheduled when
3. move_item to reschedule, get_roadmap for the full document\
""",
)


def _get_store() -> Store:
    return Store()


class _Signals:
    def __init__(self) -> None:
        self.error: str | None = None

    def auth_required(self) -> None:
        self.error = "Error: a valid password is required."

    def not_found(self) -> None:
        self.error = "Error: roadmap not found."


async def _open(identifier: str, password: str | None, editing: bool = False):
    signals = _Signals()
    session = RoadmapSession(
        _get_store(),
        editing=editing,
        on_auth_required=signals.auth_required,
        on_not_found=signals.not_found,
    )
    await session.load_roadmap(identifier, password)
    return session, signals


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
def list_roadmaps() -> str:
    """List roadmap identifiers and whether each is password protected."""
    store = _get_store()
    out = []
    for identifier in store.list_identifiers():
        try:
            out.append({"id": identifier, "protected": store.is_protected(identifier)})
        except RoadmapError as e:
            out.append({"id": identifier, "error": str(e)})
    return json.dumps(out, indent=2)


@mcp.tool()
async def get_roadmap(identifier: str, password: str | None = None) -> str:
    """Return the full roadmap document as JSON.

    Args:
        identifier: Roadmap identifier
        password: Password, for protected roadmaps
    """
    try:
        session, signals = await _open(identifier, password)
    except RoadmapError as e:
        return f"Error: {e}"
    if signals.error:
        return signals.error
    return json.dumps(session.roadmap.to_dict(), indent=2)


@mcp.tool()
async def get_projection(
    identifier: str,
    start_month: str,
    viewport: str = "medium",
    password: str | None = None,
) -> str:
    """Show which items fall in which month, grouped by section.

    Args:
        identifier: Roadmap identifier
        start_month: First month shown (YYYY-MM)
        viewport: small (1 month), medium (3 months) or large (4 months)
        password: Password, for protected roadmaps
    """
    try:
        reference = parse_month(start_month)
        window = window_for(viewport)
    except ValueError as e:
        return f"Error: {e}"
    try:
        session, signals = await _open(identifier, password)
    except RoadmapError as e:
        return f"Error: {e}"
    if signals.error:
        return signals.error

    rows = []
    for row in session.projection(reference, window):
        rows.append({
            "section": row.name,
            "months": [
                {
                    "month": cell.month.strftime("%Y-%m"),
                    "items": [
                        {
                            "index": e.index,
                            "name": e.item.name,
                            "stages": [
                                df.to_dict() for df in e.item.date_fields
                                if same_month(cell.month, df.when)
                            ],
                        }
                        for e in cell.items
                    ],
                }
                for cell in row.months
            ],
        })
    return json.dumps(rows, indent=2)


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def move_item(
    identifier: str,
    index: int,
    from_month: str,
    to_month: str,
    password: str | None = None,
) -> str:
    """Reschedule an item by moving its dates from one month to another.

    Args:
        identifier: Roadmap identifier
        index: Item number from get_projection
        from_month: Month the item currently sits in (YYYY-MM)
        to_month: Month to move it to (YYYY-MM)
        password: Password, for protected roadmaps
    """
    try:
        origin = parse_month(from_month)
        target = parse_month(to_month)
    except ValueError as e:
        return f"Error: {e}"

    try:
        session, signals = await _open(identifier, password, editing=True)
        if signals.error:
            return signals.error
        if not 0 <= index < len(session.roadmap.items):
            return f"Error: no item at index {index}."
        name = session.roadmap.items[index].name
        session.drag_start(index, origin)
        session.drag_enter(target)
        changed = session.drop()
        await session.flush()
    except RoadmapError as e:
        return f"Error: {e}"
    if signals.error:
        return signals.error
    if not changed:
        return f"No change: '{name}' has no date in {from_month} that can move to {to_month}."
    return f"Moved '{name}' from {month_start(origin):%Y-%m} to {month_start(target):%Y-%m}."


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
