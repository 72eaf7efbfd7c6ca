import pytest

from roadmapr import edits
from roadmapr.models import DateField, Item, Label


def test_add_item_creates_missing_section(roadmap):
    out = edits.add_item(roadmap, Item(name="New", section="Infra", date_fields=[DateField("2024-06-01")]))
    assert out.items[-1].name == "New"
    assert out.sections[-1] == "Infra"
    assert len(roadmap.items) == 8
    assert "Infra" not in roadmap.sections


def test_update_item(roadmap):
    out = edits.update_item(roadmap, 1, name="Sign-in", section="", date_fields=[DateField("2024-07-01", "build")])
    item = out.items[1]
    assert item.name == "Sign-in"
    assert item.section is None
    assert item.date_fields == [DateField("2024-07-01", "build")]
    assert item.id == "login"
    assert roadmap.items[1].name == "Login page"


def test_update_item_bad_index(roadmap):
    with pytest.raises(IndexError):
        edits.update_item(roadmap, 99, name="x")


def test_remove_item(roadmap):
    out = edits.remove_item(roadmap, 0)
    assert [i.id for i in out.items][:2] == ["login", "docs"]
    assert len(out.items) == len(roadmap.items) - 1


def test_sections(roadmap):
    assert edits.add_section(roadmap, "Backend") is roadmap
    with pytest.raises(ValueError):
        edits.add_section(roadmap, "")

    out = edits.remove_section(roadmap, "Backend")
    assert out.sections == ["Frontend", "Empty"]
    assert out.items[0].section is None
    with pytest.raises(KeyError):
        edits.remove_section(roadmap, "Nope")


def test_labels(roadmap):
    out = edits.set_label(roadmap, "design", "red")
    assert out.label_for("design") == Label("design", "red")
    assert len(out.labels) == 2

    out = edits.set_label(out, "ship", "blue")
    assert [lb.name for lb in out.labels] == ["design", "build", "ship"]

    out = edits.remove_label(out, "build")
    assert out.label_for("build") is None
    with pytest.raises(KeyError):
        edits.remove_label(out, "build")


def test_update_roadmap(roadmap):
    out = edits.update_roadmap(roadmap, name="Renamed", notes="")
    assert out.name == "Renamed"
    assert out.notes is None
    assert out.theme == "hpe"
