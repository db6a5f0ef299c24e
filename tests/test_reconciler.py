from livesite.config import Settings
from livesite.events import EventEmitter, EventType
from livesite.preview.reconciler import EditReconciler, EditStatus, clean_edit_content
from livesite.preview.renderer import PreviewRenderer
from livesite.preview.sandbox import InMemorySandbox
from livesite.project.store import ProjectFileStore

LANDING = "<h1>Hello</h1><ul><li>One <span>x</span></li><li>Two</li></ul><p>Tail</p>"


def _setup(files=None, *, allows_scripts=True, allow_create_pages=False, edit_gate=None):
    store = ProjectFileStore(files or {"landing": LANDING, "about": "<p>About</p>"})
    settings = Settings()
    settings.page_extensions = [".html", ".htm"]
    renderer = PreviewRenderer(InMemorySandbox(allows_scripts=allows_scripts), settings=settings)
    emitter = EventEmitter(workspace_id="ws")
    reconciler = EditReconciler(
        store,
        renderer,
        allow_create_pages=allow_create_pages,
        edit_gate=edit_gate,
        emitter=emitter,
    )
    record = renderer.render_from(store)
    return store, renderer, reconciler, emitter, record


def _edit(record, sync_id, content, render_id=None):
    return {
        "type": "SYNC_TEXT",
        "syncId": sync_id,
        "newContent": content,
        "renderId": render_id or record.render_id,
    }


def test_edit_rewrites_only_the_target_element():
    store, _, reconciler, emitter, record = _setup()

    outcome = reconciler.handle_message(_edit(record, 0, "Welcome"))

    assert outcome.status is EditStatus.APPLIED
    assert outcome.file_name == "landing"
    assert store.get("landing") == LANDING.replace("<h1>Hello</h1>", "<h1>Welcome</h1>")
    assert store.get("about") == "<p>About</p>"
    assert emitter.get_events()[-1].type == EventType.EDIT_APPLIED


def test_later_elements_stay_addressable_after_an_edit():
    store, _, reconciler, _, record = _setup()

    assert reconciler.handle_message(_edit(record, 0, "Welcome back")).status is EditStatus.APPLIED
    assert reconciler.handle_message(_edit(record, 4, "End")).status is EditStatus.APPLIED
    assert reconciler.handle_message(_edit(record, 3, "Deux")).status is EditStatus.APPLIED

    assert store.get("landing") == (
        "<h1>Welcome back</h1><ul><li>One <span>x</span></li><li>Deux</li></ul><p>End</p>"
    )
    assert record.revision == store.revision("landing")


def test_editing_a_parent_invalidates_nested_elements():
    store, _, reconciler, _, record = _setup()

    assert reconciler.handle_message(_edit(record, 1, "Uno")).status is EditStatus.APPLIED
    nested = reconciler.handle_message(_edit(record, 2, "y"))

    assert nested.status is EditStatus.REJECTED
    assert nested.reason == "element cannot be patched"
    assert "<li>Uno</li><li>Two</li>" in store.get("landing")


def test_editing_a_child_keeps_the_parent_patchable():
    store, _, reconciler, _, record = _setup()

    assert reconciler.handle_message(_edit(record, 2, "xyz")).status is EditStatus.APPLIED
    assert "<li>One <span>xyz</span></li>" in store.get("landing")

    assert reconciler.handle_message(_edit(record, 1, "Uno")).status is EditStatus.APPLIED
    assert store.get("landing") == "<h1>Hello</h1><ul><li>Uno</li><li>Two</li></ul><p>Tail</p>"


def test_stale_render_is_rejected():
    store, _, reconciler, emitter, record = _setup()

    outcome = reconciler.handle_message(_edit(record, 0, "Nope", render_id="old-render"))

    assert outcome.status is EditStatus.REJECTED
    assert outcome.reason == "stale render"
    assert store.get("landing") == LANDING
    assert emitter.get_events()[-1].type == EventType.EDIT_REJECTED


def test_edit_after_content_changed_is_rejected():
    store, _, reconciler, _, record = _setup()
    store.set_file_content("landing", "<h1>Regenerated</h1>")

    outcome = reconciler.handle_message(_edit(record, 0, "Nope"))

    assert outcome.reason == "content changed since render"
    assert store.get("landing") == "<h1>Regenerated</h1>"


def test_edit_for_inactive_file_is_rejected():
    store, _, reconciler, _, record = _setup()
    store.switch_active("about")

    outcome = reconciler.handle_message(_edit(record, 0, "Nope"))

    assert outcome.reason == "file is no longer active"
    assert store.get("landing") == LANDING
    assert store.get("about") == "<p>About</p>"


def test_edit_while_file_is_streaming_is_rejected():
    store, _, reconciler, _, record = _setup()
    store.streaming_file = "landing"

    assert reconciler.handle_message(_edit(record, 0, "Nope")).reason == "file is being streamed"

    store.streaming_file = None
    _, _, gated, _, gated_record = _setup(edit_gate=lambda name: False)
    assert gated.handle_message(_edit(gated_record, 0, "Nope")).reason == "file is being streamed"


def test_unknown_sync_id_and_missing_render():
    store, renderer, reconciler, _, record = _setup()

    assert reconciler.handle_message(_edit(record, 99, "x")).reason == "unknown syncId"

    renderer.current = None
    assert reconciler.handle_message(_edit(record, 0, "x")).reason == "no current render"


def test_edit_rejected_when_live_editing_is_disabled():
    store, _, reconciler, _, record = _setup(allows_scripts=False)

    outcome = reconciler.handle_message(_edit(record, 0, "Nope"))

    assert outcome.reason == "live editing is disabled for this render"
    assert store.get("landing") == LANDING


def test_edit_content_is_cleaned_before_it_is_stored():
    store, _, reconciler, _, record = _setup(
        {"landing": '<p>Visit <a href="about.html">About</a></p>', "about": "<p>About</p>"}
    )
    address = next(iter(record.addresses))
    reported = (
        f'Visit <a href="{address}" data-page-target="about.html" contenteditable="true" '
        f'data-sync-id="1" onclick="x()">About us</a><script>bad()</script>'
    )

    assert reconciler.handle_message(_edit(record, 0, reported)).status is EditStatus.APPLIED
    assert store.get("landing") == '<p>Visit <a href="about.html">About us</a></p>'


def test_clean_edit_content_maps_addresses_back():
    cleaned = clean_edit_content('<img src="data:abc"/> plain', {"data:abc": "logo.svg"})
    assert 'src="logo.svg"' in cleaned
    assert clean_edit_content("just text") == "just text"


def test_navigation_switches_and_renders_page():
    store, renderer, reconciler, emitter, _ = _setup()

    outcome = reconciler.handle_message({"type": "SWITCH_PAGE_INTERNAL", "pageName": "About.html"})

    assert outcome.status is EditStatus.NAVIGATED
    assert outcome.file_name == "about"
    assert store.active_file == "about"
    assert renderer.current.file_name == "about"
    assert emitter.get_events()[-1].type == EventType.PREVIEW_READY


def test_navigation_to_unknown_page_is_ignored_by_default():
    store, _, reconciler, _, _ = _setup()

    outcome = reconciler.handle_message({"type": "SWITCH_PAGE_INTERNAL", "pageName": "ghost.html"})

    assert outcome.status is EditStatus.IGNORED
    assert "ghost" not in store
    assert store.active_file == "landing"


def test_navigation_can_create_pages_when_allowed():
    store, renderer, reconciler, _, _ = _setup(allow_create_pages=True)

    outcome = reconciler.handle_message({"type": "SWITCH_PAGE_INTERNAL", "pageName": "Ghost.html"})

    assert outcome.status is EditStatus.NAVIGATED
    assert store.get("ghost") == ""
    assert store.active_file == "ghost"
    assert renderer.current is None


def test_console_and_runtime_errors_are_forwarded():
    _, _, reconciler, emitter, _ = _setup()

    log = reconciler.handle_message({"type": "CONSOLE_LOG", "logType": "warn", "message": "careful"})
    error = reconciler.handle_message({"type": "IFRAME_ERROR", "error": {"msg": "x is undefined", "line": 3}})

    assert log.status is EditStatus.FORWARDED
    assert error.status is EditStatus.FORWARDED
    assert reconciler.console_log[0].message == "careful"
    assert reconciler.errors[0].describe() == "x is undefined (line 3)"
    types = [event.type for event in emitter.get_events()]
    assert types[-2:] == [EventType.CONSOLE_LOG, EventType.SANDBOX_ERROR]


def test_malformed_messages_are_ignored():
    store, _, reconciler, _, _ = _setup()

    assert reconciler.handle_message({"type": "SYNC_TEXT"}).status is EditStatus.IGNORED
    assert reconciler.handle_message({"type": "UNKNOWN"}).status is EditStatus.IGNORED
    assert reconciler.handle_message("not a message").status is EditStatus.IGNORED
    assert store.get("landing") == LANDING
