import asyncio

import pytest

from roadmapr.errors import NotFound, Unauthorized
from roadmapr.models import DateField, Item, Label, LinkField, Roadmap


class FakeBackend:
    """In-memory backend. Fetches and commits can be held open with events or delayed."""

    def __init__(self):
        self.docs: dict[str, dict] = {}
        self.passwords: dict[str, str] = {}
        self.fetches: list[tuple[str, str | None]] = []
        self.commits: list[tuple[str, Roadmap, str | None]] = []
        self.fetch_gates: dict[str, asyncio.Event] = {}
        self.commit_gate: asyncio.Event | None = None
        self.commit_error: Exception | None = None
        self.commit_delays: list[float] = []

    def put(self, identifier, roadmap, password=None):
        self.docs[identifier] = roadmap.to_dict()
        if password:
            self.passwords[identifier] = password

    def _check(self, identifier, password):
        if identifier not in self.docs:
            raise NotFound(identifier)
        if identifier in self.passwords and self.passwords[identifier] != password:
            raise Unauthorized(identifier)

    async def fetch(self, identifier, password=None):
        self.fetches.append((identifier, password))
        gate = self.fetch_gates.get(identifier)
        if gate is not None:
            await gate.wait()
        self._check(identifier, password)
        return Roadmap.from_dict(self.docs[identifier])

    async def commit(self, identifier, roadmap, password=None):
        if self.commit_delays:
            await asyncio.sleep(self.commit_delays.pop(0))
        if self.commit_gate is not None:
            await self.commit_gate.wait()
        if self.commit_error is not None:
            raise self.commit_error
        self._check(identifier, password)
        self.docs[identifier] = roadmap.to_dict()
        self.commits.append((identifier, roadmap, password))


def make_roadmap() -> Roadmap:
    return Roadmap(
        name="Platform",
        theme="hpe",
        notes="# Plan\nShip it.",
        labels=[Label("design", "#6FFFB0"), Label("build", "#FD6FFF")],
        sections=["Backend", "Frontend", "Empty"],
        items=[
            Item(
                id="api",
                name="API",
                section="Backend",
                date_fields=[
                    DateField("2024-03-10", "design"),
                    DateField("2024-04-20", "build", "50%"),
                ],
                link_fields=[LinkField("https://github.com/acme/api")],
            ),
            Item(id="login", name="Login page", section="Frontend", date_fields=[DateField("2024-03-05", "design")]),
            Item(id="docs", name="Docs", date_fields=[DateField("2024-03-20", "build")]),
            Item(id="schema", name="Schema", section="Backend", date_fields=[DateField("2024-03-01", "design")]),
            Item(id="later", name="Later", section="Backend", date_fields=[DateField("2024-09-01", "design")]),
            Item(id="ops", name="Undeclared", section="Ops", date_fields=[DateField("2024-03-02", "build")]),
            Item(id="undated", name="Undated", section="Backend"),
            Item(id="perf", name="Perf", section="Backend", date_fields=[DateField("2024-04-05", "build")]),
        ],
    )


@pytest.fixture
def roadmap():
    return make_roadmap()


@pytest.fixture
def backend(roadmap):
    b = FakeBackend()
    b.put("platform", roadmap)
    return b
