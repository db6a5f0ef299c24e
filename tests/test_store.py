import random

import pytest

from livesite.project.naming import generate_display_name, slugify
from livesite.project.store import ProjectFileStore, ProjectState


def test_new_files_keep_insertion_order():
    store = ProjectFileStore()
    store.append_or_create("landing", "<h1>")
    store.append_or_create("about", "")
    store.append_or_create("landing", "</h1>")

    assert store.names() == ["landing", "about"]
    assert store.get("landing") == "<h1></h1>"
    assert store.active_file == "landing"


def test_revisions_increase_on_every_change():
    store = ProjectFileStore({"landing": "<p>a</p>"})
    assert store.revision("landing") == 1
    store.set_file_content("landing", "<p>b</p>")
    assert store.revision("landing") == 2
    store.append_or_create("landing", "!")
    assert store.revision("landing") == 3
    assert store.revision("missing") == 0


def test_switch_active_requires_existing_file():
    store = ProjectFileStore({"landing": "a", "about": "b"})
    assert store.switch_active("about") is True
    assert store.active_file == "about"
    assert store.switch_active("ghost") is False
    assert store.active_file == "about"


def test_initial_active_file_prefers_entry_file():
    store = ProjectFileStore({"about": "b", "landing": "a"})
    assert store.active_file == "landing"

    store = ProjectFileStore({"about": "b"}, active_file="missing")
    assert store.active_file == "about"


def test_snapshot_is_read_only_copy():
    store = ProjectFileStore({"landing": "a"})
    snapshot = store.snapshot()
    store.set_file_content("landing", "b")

    assert snapshot["landing"] == "a"
    with pytest.raises(TypeError):
        snapshot["landing"] = "c"  # type: ignore[index]


def test_state_round_trip():
    store = ProjectFileStore(
        {"landing": "a", "about": "b"},
        active_file="about",
        project_id="p1",
        display_name="onyx-vault-7",
    )
    state = store.to_state()
    assert isinstance(state, ProjectState)

    restored = ProjectFileStore.from_state(state)
    assert restored.names() == ["landing", "about"]
    assert restored.active_file == "about"
    assert restored.project_id == "p1"
    assert restored.display_name == "onyx-vault-7"


def test_display_names_and_slugs():
    name = generate_display_name(random.Random(3))
    assert len(name.split("-")) == 3
    assert slugify("  My Bakery Site! ") == "my-bakery-site"
    assert slugify("") == ""
