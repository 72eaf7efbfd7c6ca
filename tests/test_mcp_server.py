import asyncio
import json

import pytest

from roadmapr import mcp_server
from roadmapr.persistence import Store


@pytest.fixture
def store(tmp_path, monkeypatch, roadmap):
    s = Store(tmp_path)
    s.create("platform", roadmap)
    s.create("secret", roadmap, password="pw")
    monkeypatch.setattr(mcp_server, "_get_store", lambda: s)
    return s


def test_list_roadmaps(store):
    out = json.loads(mcp_server.list_roadmaps())
    assert out == [{"id": "platform", "protected": False}, {"id": "secret", "protected": True}]


def test_get_projection(store):
    out = json.loads(asyncio.run(mcp_server.get_projection("platform", "2024-03", "small")))
    assert [row["section"] for row in out] == ["Backend", "Frontend", None]
    march = out[0]["months"][0]
    assert march["month"] == "2024-03"
    assert [i["name"] for i in march["items"]] == ["Schema", "API"]
    assert march["items"][1]["stages"] == [{"date": "2024-03-10", "stage": "design"}]


def test_get_roadmap_requires_password(store):
    assert asyncio.run(mcp_server.get_roadmap("secret")).startswith("Error")
    assert asyncio.run(mcp_server.get_roadmap("nope")) == "Error: roadmap not found."
    doc = json.loads(asyncio.run(mcp_server.get_roadmap("secret", password="pw")))
    assert doc["name"] == "Platform"


def test_move_item(store):
    msg = asyncio.run(mcp_server.move_item("platform", 1, "2024-03", "2024-06"))
    assert msg == "Moved 'Login page' from 2024-03 to 2024-06."
    assert store.load("platform").items[1].date_fields[0].date == "2024-06-01"

    msg = asyncio.run(mcp_server.move_item("platform", 1, "2024-03", "2024-06"))
    assert msg.startswith("No change")
    assert asyncio.run(mcp_server.move_item("platform", 42, "2024-03", "2024-06")).startswith("Error")
    assert asyncio.run(mcp_server.move_item("platform", 1, "March", "2024-06")).startswith("Error")
