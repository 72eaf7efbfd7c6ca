"""Roadmap document model."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


def parse_date(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime into a naive datetime.

    Aware values are converted to UTC first so every date in a roadmap
    compares against every other one.
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def new_item_id() -> str:
    return uuid.uuid4().hex


class LinkKind(enum.StrEnum):
    FIGMA = "figma"
    GITHUB = "github"
    LINK = "link"


@dataclass
class Label:
    """Display color for a stage name."""

    name: str
    color: str

    def to_dict(self) -> dict:
        return {"name": self.name, "color": self.color}

    @classmethod
    def from_dict(cls, d: dict) -> Label:
        return cls(name=d["name"], color=d.get("color", ""))


@dataclass
class DateField:
    """Position of an item on one stage's timeline."""

    date: str
    stage: str = ""
    progress: str | None = None

    @property
    def when(self) -> datetime:
        return parse_date(self.date)

    def to_dict(self) -> dict:
        d = {"date": self.date, "stage": self.stage}
        if self.progress is not None:
            d["progress"] = self.progress
        return d

    @classmethod
    def from_dict(cls, d: dict) -> DateField:
        return cls(
            date=d["date"],
            stage=d.get("stage", ""),
            progress=d.get("progress"),
        )


@dataclass
class LinkField:
    link_url: str

    @property
    def kind(self) -> LinkKind:
        if "figma.com" in self.link_url:
            return LinkKind.FIGMA
        if "github.com" in self.link_url:
            return LinkKind.GITHUB
        return LinkKind.LINK

    def to_dict(self) -> dict:
        return {"linkUrl": self.link_url}

    @classmethod
    def from_dict(cls, d: dict) -> LinkField:
        return cls(link_url=d.get("linkUrl", ""))


@dataclass
class Item:
    """A unit of planned work, placed on the grid by its date fields."""

    name: str
    id: str = field(default_factory=new_item_id)
    note: str | None = None
    section: str | None = None  # empty or None -> catch-all group
    date_fields: list[DateField] = field(default_factory=list)
    link_fields: list[LinkField] = field(default_factory=list)

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "name": self.name,
            "dateFields": [df.to_dict() for df in self.date_fields],
            "linkFields": [lf.to_dict() for lf in self.link_fields],
        }
        if self.note is not None:
            d["note"] = self.note
        if self.section:
            d["section"] = self.section
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Item:
        return cls(
            id=d.get("id") or new_item_id(),
            name=d["name"],
            note=d.get("note"),
            section=d.get("section"),
            date_fields=[DateField.from_dict(x) for x in d.get("dateFields", [])],
            link_fields=[LinkField.from_dict(x) for x in d.get("linkFields", [])],
        )


@dataclass
class Roadmap:
    """The whole document. Replaced wholesale, never patched in place."""

    name: str
    theme: str = "grommet"
    notes: str | None = None
    labels: list[Label] = field(default_factory=list)
    sections: list[str] = field(default_factory=list)
    items: list[Item] = field(default_factory=list)

    def label_for(self, stage: str) -> Label | None:
        return next((lb for lb in self.labels if lb.name == stage), None)

    def index_of(self, item_id: str) -> int | None:
        return next(
            (i for i, item in enumerate(self.items) if item.id == item_id), None
        )

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "theme": self.theme,
            "labels": [lb.to_dict() for lb in self.labels],
            "sections": list(self.sections),
            "items": [item.to_dict() for item in self.items],
        }
        if self.notes is not None:
            d["notes"] = self.notes
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Roadmap:
        return cls(
            name=d["name"],
            theme=d.get("theme", "grommet"),
            notes=d.get("notes"),
            labels=[Label.from_dict(x) for x in d.get("labels", [])],
            sections=list(d.get("sections", [])),
            items=[Item.from_dict(x) for x in d.get("items", [])],
        )
