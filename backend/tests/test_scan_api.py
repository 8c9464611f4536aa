"""
Tests for the /scan endpoint
"""
import pytest
from fastapi.testclient import TestClient

from api.scan import get_orchestrator
from core.config import Settings, get_settings
from main import app
from scanner import engine as engine_mod
from scanner.engine import GitleaksEngine
from scanner.errors import FetchError, NormalizationError, ScanError, ScanTimeoutError
from scanner.orchestrator import ScanOrchestrator
from tests.scan_helpers import FakeEngine, FakeFetcher, FakeProcess

client = TestClient(app)


@pytest.fixture
def use_pipeline(workspace_root):
    """Swap the real clone/gitleaks pipeline for fakes rooted in workspace_root."""
    def _use(fetcher=None, engine=None, environment="production"):
        orchestrator = ScanOrchestrator(
            fetcher=fetcher or FakeFetcher(),
            engine=engine or FakeEngine(),
            timeout=5,
            workspace_root=str(workspace_root),
        )
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        app.dependency_overrides[get_settings] = lambda: Settings(ENVIRONMENT=environment)
        return orchestrator

    yield _use
    app.dependency_overrides.clear()


class TestScanSuccess:

    def test_post_with_aws_key(self, use_pipeline, aws_report, workspace_root):
        use_pipeline(engine=FakeEngine(report=aws_report))

        response = client.post("/scan", json={"repoUrl": "https://github.com/acme/app"})

        assert response.status_code == 200
        data = response.json()
        assert data["repoName"] == "app"
        assert data["totalSecrets"] == 1
        assert data["scanEngine"] == "Gitleaks"
        assert data["version"] == "8.18.0"
        finding = data["findings"][0]
        assert finding["id"] == 1
        assert finding["severity"] == "high"
        assert finding["secretType"] == "AWS Access Key"
        assert finding["file"] == ".env"
        assert finding["lineNumber"] == 23
        assert finding["commit"] == "0f3a1c9"
        assert response.headers["access-control-allow-origin"] == "*"
        assert list(workspace_root.iterdir()) == []

    def test_get_with_query_parameter(self, use_pipeline, mixed_report):
        fetcher = FakeFetcher()
        use_pipeline(fetcher=fetcher, engine=FakeEngine(report=mixed_report))

        response = client.get("/scan", params={"repoUrl": "https://github.com/acme/app.git"})

        assert response.status_code == 200
        assert response.json()["repoName"] == "app"
        assert response.json()["totalSecrets"] == 2
        assert fetcher.calls[0][0] == "https://github.com/acme/app.git"

    def test_ssh_shorthand_url(self, use_pipeline, aws_report):
        fetcher = FakeFetcher()
        use_pipeline(fetcher=fetcher, engine=FakeEngine(report=aws_report))

        response = client.post("/scan", json={"repoUrl": "git@github.com:acme/app.git"})

        assert response.status_code == 200
        assert response.json()["repoName"] == "app"
        assert fetcher.calls[0][0] == "https://github.com/acme/app.git"

    def test_clean_repository(self, use_pipeline):
        use_pipeline(engine=FakeEngine(report="[]"))
        response = client.post("/scan", json={"repoUrl": "https://github.com/acme/clean"})
        assert response.status_code == 200
        assert response.json()["totalSecrets"] == 0
        assert response.json()["findings"] == []


class TestScanClientErrors:

    def test_invalid_url(self, use_pipeline, workspace_root):
        fetcher = FakeFetcher()
        use_pipeline(fetcher=fetcher)

        response = client.post("/scan", json={"repoUrl": "not-a-url"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid repository URL"
        assert "message" in response.json()
        assert fetcher.calls == []
        assert list(workspace_root.iterdir()) == []

    def test_missing_url_post(self, use_pipeline):
        use_pipeline()
        response = client.post("/scan", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Repository URL is required"

    def test_missing_url_get(self, use_pipeline):
        use_pipeline()
        response = client.get("/scan")
        assert response.status_code == 400
        assert response.json()["error"] == "Repository URL is required"
        assert response.headers["access-control-allow-origin"] == "*"

    def test_non_github_host(self, use_pipeline):
        use_pipeline()
        response = client.post("/scan", json={"repoUrl": "https://gitlab.com/acme/app"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid repository URL"

    def test_non_string_url(self, use_pipeline):
        use_pipeline()
        response = client.post("/scan", json={"repoUrl": 42})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid repository URL"

    @pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b""])
    def test_bad_body(self, use_pipeline, body):
        use_pipeline()
        response = client.post("/scan", content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"


class TestScanServerErrors:

    @pytest.mark.parametrize("fetch_error,scan_error", [
        (FetchError("not_found", "fatal: repository not found"), None),
        (None, ScanError(125, "docker: Error response from daemon")),
        (None, ScanTimeoutError(5)),
        (None, NormalizationError("Scan report is not valid JSON")),
        (None, RuntimeError("unexpected")),
    ])
    def test_failures_are_500_and_clean_up(self, use_pipeline, workspace_root, fetch_error, scan_error):
        use_pipeline(fetcher=FakeFetcher(error=fetch_error), engine=FakeEngine(error=scan_error))

        response = client.post("/scan", json={"repoUrl": "https://github.com/acme/app"})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Internal server error"
        assert data["message"]
        assert "details" not in data
        assert str(workspace_root) not in response.text
        assert list(workspace_root.iterdir()) == []

    @pytest.mark.parametrize("stdout", [b"", b"null"])
    def test_gitleaks_fatal_exit_one_is_500(self, use_pipeline, monkeypatch, workspace_root, stdout):
        async def _fake_exec(*argv, **kwargs):
            return FakeProcess(returncode=1, stdout=stdout, stderr=b"FTL failed to scan Git repository")

        monkeypatch.setattr(engine_mod.asyncio, "create_subprocess_exec", _fake_exec)
        use_pipeline(engine=GitleaksEngine())

        response = client.post("/scan", json={"repoUrl": "https://github.com/acme/app"})

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        assert "totalSecrets" not in response.json()
        assert list(workspace_root.iterdir()) == []

    def test_timeout_message(self, use_pipeline, workspace_root):
        use_pipeline(engine=FakeEngine(error=ScanTimeoutError(5)))
        response = client.post("/scan", json={"repoUrl": "https://github.com/acme/app"})
        assert response.status_code == 500
        assert "timed out" in response.json()["message"]
        assert list(workspace_root.iterdir()) == []

    def test_details_only_in_development(self, use_pipeline):
        use_pipeline(engine=FakeEngine(error=ScanError(2, "gitleaks exploded")), environment="development")
        response = client.post("/scan", json={"repoUrl": "https://github.com/acme/app"})
        assert response.status_code == 500
        assert "gitleaks exploded" in response.json()["details"]


def test_options_preflight():
    response = client.options("/scan")
    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]
    assert "Content-Type" in response.headers["access-control-allow-headers"]
