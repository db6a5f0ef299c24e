import io
import json
import zipfile

from fastapi.testclient import TestClient

from livesite.config import get_settings, refresh_settings
from livesite.db.database import reset_database
from livesite.db.migrations import init_db
from livesite.services.deployment import DeployResult
from livesite.services.persistence import InMemoryProjectPersistence
from livesite.services.workspace import WorkspaceRegistry
from livesite.stream.transport import DoneSentinel, TextFragment

SITE_STREAM = [
    TextFragment("[NEW_PAGE: landing]<h1>Bakery</h1><p>Visit <a href=\"about.html\">about</a></p>[END_PAGE]"),
    TextFragment("[ACTION: wrote landing][NEW_PAGE: about]<p>Since 1990</p>[END_PAGE]"),
    DoneSentinel(),
]


class FakeTransport:
    def __init__(self, events) -> None:
        self.events = list(events)
        self.requests = []

    async def stream(self, request):
        self.requests.append(request)
        for event in self.events:
            yield event


class FakeDeployer:
    def __init__(self, result) -> None:
        self.result = result
        self.requests = []

    async def deploy(self, request):
        self.requests.append(request)
        return self.result


class FakeGenerator:
    async def stream(self, request):
        for text in ("[NEW_PAGE: landing]", "<h1>Hi</h1>"):
            yield text


def _create_app(tmp_path, monkeypatch, events=SITE_STREAM):
    db_path = tmp_path / "api.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("DEFAULT_BASE_URL", "http://localhost")
    monkeypatch.setenv("DEFAULT_KEY", "test-key")
    monkeypatch.setenv("PAGE_EXTENSIONS", ".html,.htm")
    refresh_settings()
    reset_database()
    init_db()

    from livesite.main import create_app

    app = create_app()
    persistence = InMemoryProjectPersistence()
    app.state.registry = WorkspaceRegistry(
        settings=get_settings(),
        persistence=persistence,
        transport_factory=lambda: FakeTransport(events),
    )
    return app, persistence


def _sse_payloads(body: str):
    payloads = []
    for line in body.splitlines():
        if not line.startswith("data: "):
            continue
        data = line[len("data: "):]
        if data == "[DONE]":
            payloads.append(data)
        else:
            payloads.append(json.loads(data))
    return payloads


def _generate(client, workspace_id, prompt="Build a bakery site"):
    response = client.post(f"/api/workspaces/{workspace_id}/generate", json={"prompt": prompt})
    assert response.status_code == 200
    return _sse_payloads(response.text)


def test_health_reports_checks(tmp_path, monkeypatch) -> None:
    app, _ = _create_app(tmp_path, monkeypatch)
    with TestClient(app) as client:
        response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["checks"]["database"] == "ok"
    assert body["checks"]["api_key"] == "ok"
    assert body["status"] == "ok"


def test_generate_streams_events_and_updates_files(tmp_path, monkeypatch) -> None:
    app, persistence = _create_app(tmp_path, monkeypatch)
    with TestClient(app) as client:
        workspace = client.post("/api/workspaces").json()
        payloads = _generate(client, workspace["id"])

        assert payloads[-1] == "[DONE]"
        types = [payload["type"] for payload in payloads[:-1]]
        assert "content_delta" in types
        assert "file_switch" in types
        assert types[-1] == "done"

        files = client.get(f"/api/workspaces/{workspace['id']}/files").json()
        assert [item["name"] for item in files["files"]] == ["landing", "about"]
        assert files["active_file"] == "about"
        assert all(item["streaming"] is False for item in files["files"])

        about = client.get(f"/api/workspaces/{workspace['id']}/files/about").json()
        assert about["content"] == "<p>Since 1990</p>"
        assert client.get(f"/api/workspaces/{workspace['id']}/files/ghost").status_code == 404

        described = client.get(f"/api/workspaces/{workspace['id']}").json()
        assert described["state"] == "completed"
        assert described["project_id"] in persistence.projects
        assert "wrote landing" in described["activity_log"]


def test_preview_edit_and_navigation_round_trip(tmp_path, monkeypatch) -> None:
    app, _ = _create_app(tmp_path, monkeypatch)
    with TestClient(app) as client:
        workspace_id = client.post("/api/workspaces").json()["id"]
        _generate(client, workspace_id)

        switched = client.post(f"/api/workspaces/{workspace_id}/active", json={"name": "landing"}).json()
        assert switched["switched"] is True
        assert switched["active_file"] == "landing"

        preview = client.get(f"/api/workspaces/{workspace_id}/preview")
        assert preview.status_code == 200
        assert 'data-sync-id="0"' in preview.text

        render_id = client.get(f"/api/workspaces/{workspace_id}").json()["render_id"]
        applied = client.post(
            f"/api/workspaces/{workspace_id}/messages",
            json={"type": "SYNC_TEXT", "syncId": 0, "newContent": "Corner Bakery", "renderId": render_id},
        ).json()
        assert applied["status"] == "applied"
        landing = client.get(f"/api/workspaces/{workspace_id}/files/landing").json()["content"]
        assert landing.startswith("<h1>Corner Bakery</h1>")

        stale = client.post(
            f"/api/workspaces/{workspace_id}/messages",
            json={"type": "SYNC_TEXT", "syncId": 0, "newContent": "Nope", "renderId": "stale"},
        ).json()
        assert stale["status"] == "rejected"
        assert stale["reason"] == "stale render"

        navigated = client.post(
            f"/api/workspaces/{workspace_id}/messages",
            json={"type": "SWITCH_PAGE_INTERNAL", "pageName": "about"},
        ).json()
        assert navigated["status"] == "navigated"
        assert client.get(f"/api/workspaces/{workspace_id}").json()["active_file"] == "about"

        ignored = client.post(f"/api/workspaces/{workspace_id}/messages", json={"type": "SYNC_TEXT"}).json()
        assert ignored["status"] == "ignored"


def test_workspace_reopens_saved_project(tmp_path, monkeypatch) -> None:
    app, _ = _create_app(tmp_path, monkeypatch)
    with TestClient(app) as client:
        first = client.post("/api/workspaces").json()
        _generate(client, first["id"])
        project_id = client.get(f"/api/workspaces/{first['id']}").json()["project_id"]

        reopened = client.post("/api/workspaces", json={"projectId": project_id}).json()
        assert reopened["id"] != first["id"]
        assert reopened["files"] == ["landing", "about"]

        assert client.post("/api/workspaces", json={"projectId": "missing"}).status_code == 404
        assert client.delete(f"/api/workspaces/{first['id']}").json() == {"closed": True}
        assert client.get(f"/api/workspaces/{first['id']}").status_code == 404


def test_deploy_uses_configured_deployer(tmp_path, monkeypatch) -> None:
    app, _ = _create_app(tmp_path, monkeypatch)
    deployer = FakeDeployer(DeployResult(ok=True, url="https://bakery.example.app"))
    app.state.deployer = deployer
    with TestClient(app) as client:
        workspace_id = client.post("/api/workspaces").json()["id"]
        _generate(client, workspace_id)

        outcome = client.post(f"/api/workspaces/{workspace_id}/deploy", json={"slug": "bakery"}).json()

    assert outcome["ok"] is True
    assert outcome["url"] == "https://bakery.example.app"
    assert outcome["repairs"] == 0
    assert deployer.requests[0].slug == "bakery"
    assert set(deployer.requests[0].files) == {"landing", "about"}


def test_abort_and_preview_when_idle(tmp_path, monkeypatch) -> None:
    app, _ = _create_app(tmp_path, monkeypatch)
    with TestClient(app) as client:
        workspace_id = client.post("/api/workspaces").json()["id"]
        assert client.post(f"/api/workspaces/{workspace_id}/abort").json()["cancelled"] is False
        assert client.get(f"/api/workspaces/{workspace_id}/preview").status_code == 404
        assert client.get("/api/workspaces/unknown").status_code == 404


def test_generate_endpoint_relays_model_output(tmp_path, monkeypatch) -> None:
    app, _ = _create_app(tmp_path, monkeypatch)

    from livesite.api.generate import get_generator

    app.dependency_overrides[get_generator] = lambda: FakeGenerator()
    with TestClient(app) as client:
        response = client.post("/api/generate", json={"prompt": "Build a bakery site"})
        assert response.status_code == 200
        payloads = _sse_payloads(response.text)
        assert payloads == [
            {"text": "[NEW_PAGE: landing]"},
            {"text": "<h1>Hi</h1>"},
            {"status": "completed"},
            "[DONE]",
        ]

        short = client.post("/api/generate", json={"prompt": "hi"})
        assert short.status_code == 400
        assert short.json()["detail"] == "Prompt is too short"


def test_heal_runs_corrective_generation(tmp_path, monkeypatch) -> None:
    app, _ = _create_app(tmp_path, monkeypatch)
    with TestClient(app) as client:
        workspace_id = client.post("/api/workspaces").json()["id"]
        _generate(client, workspace_id)

        healed = client.post(f"/api/workspaces/{workspace_id}/heal", json={"message": "x is undefined"}).json()

    assert healed["state"] == "completed"
    assert healed["error"] is None
    assert healed["files"] == ["about", "landing"]


def test_export_downloads_zip_with_index_page(tmp_path, monkeypatch) -> None:
    app, _ = _create_app(tmp_path, monkeypatch)
    with TestClient(app) as client:
        workspace_id = client.post("/api/workspaces").json()["id"]
        assert client.get(f"/api/workspaces/{workspace_id}/export").status_code == 404

        _generate(client, workspace_id)
        response = client.get(f"/api/workspaces/{workspace_id}/export")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert response.headers["content-disposition"].startswith("attachment; filename=")
    with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
        assert sorted(archive.namelist()) == ["about.html", "index.html"]
        assert archive.read("index.html").decode("utf-8").startswith("<h1>Bakery</h1>")
        assert archive.read("about.html").decode("utf-8") == "<p>Since 1990</p>"
