"""Editing operations on a roadmap.

Each function returns a new Roadmap and leaves its argument untouched, so
the result can be handed straight to ``RoadmapSession.apply``.
"""

from __future__ import annotations

from dataclasses import replace

from roadmapr.models import DateField, Item, Label, LinkField, Roadmap


def _check_index(roadmap: Roadmap, index: int) -> None:
    if not 0 <= index < len(roadmap.items):
        raise IndexError(f"No item at index {index}")


def add_item(roadmap: Roadmap, item: Item) -> Roadmap:
    if item.section and item.section not in roadmap.sections:
        roadmap = add_section(roadmap, item.section)
    return replace(roadmap, items=[*roadmap.items, item])


def update_item(
    roadmap: Roadmap,
    index: int,
    *,
    name: str | None = None,
    note: str | None = None,
    section: str | None = None,
    date_fields: list[DateField] | None = None,
    link_fields: list[LinkField] | None = None,
) -> Roadmap:
    """Replace the given fields of one item. ``section=""`` clears it."""
    _check_index(roadmap, index)
    item = roadmap.items[index]
    changes: dict = {}
    if name is not None:
        changes["name"] = name
    if note is not None:
        changes["note"] = note
    if section is not None:
        changes["section"] = section or None
    if date_fields is not None:
        changes["date_fields"] = list(date_fields)
    if link_fields is not None:
        changes["link_fields"] = list(link_fields)

    if section and section not in roadmap.sections:
        roadmap = add_section(roadmap, section)
    items = list(roadmap.items)
    items[index] = replace(item, **changes)
    return replace(roadmap, items=items)


def remove_item(roadmap: Roadmap, index: int) -> Roadmap:
    _check_index(roadmap, index)
    items = [item for i, item in enumerate(roadmap.items) if i != index]
    return replace(roadmap, items=items)


def add_section(roadmap: Roadmap, name: str) -> Roadmap:
    if not name:
        raise ValueError("Section name cannot be empty")
    if name in roadmap.sections:
        return roadmap
    return replace(roadmap, sections=[*roadmap.sections, name])


def remove_section(roadmap: Roadmap, name: str) -> Roadmap:
    """Drop a section; its items move to the catch-all group."""
    if name not in roadmap.sections:
        raise KeyError(name)
    items = [
        replace(item, section=None) if item.section == name else item
        for item in roadmap.items
    ]
    sections = [s for s in roadmap.sections if s != name]
    return replace(roadmap, sections=sections, items=items)


def set_label(roadmap: Roadmap, name: str, color: str) -> Roadmap:
    """Add a stage label or recolor an existing one."""
    labels = [
        Label(name=lb.name, color=color) if lb.name == name else lb
        for lb in roadmap.labels
    ]
    if roadmap.label_for(name) is None:
        labels.append(Label(name=name, color=color))
    return replace(roadmap, labels=labels)


def remove_label(roadmap: Roadmap, name: str) -> Roadmap:
    if roadmap.label_for(name) is None:
        raise KeyError(name)
    return replace(roadmap, labels=[lb for lb in roadmap.labels if lb.name != name])


def update_roadmap(
    roadmap: Roadmap,
    *,
    name: str | None = None,
    theme: str | None = None,
    notes: str | None = None,
) -> Roadmap:
    changes: dict = {}
    if name is not None:
        changes["name"] = name
    if theme is not None:
        changes["theme"] = theme
    if notes is not None:
        changes["notes"] = notes or None
    return replace(roadmap, **changes)
