"""Unit tests for the command line interface."""

import json

import httpx
import pytest
from typer.testing import CliRunner

from pagepicker import __version__
from pagepicker.capture.backend import HttpCaptureBackend
from pagepicker.cli import ExitCode, app
from pagepicker.cli import main as cli_module
from pagepicker.markers import NAVIGATION_SCRIPT_ID


PAGE_URL = "https://shop.example.com/products"

runner = CliRunner()


@pytest.fixture
def html_file(tmp_path):
    path = tmp_path / "page.html"
    path.write_text(
        '<ul><li class="item">A</li><li class="item">B</li></ul>'
        "<script>track()</script>"
        '<a href="/x" onclick="go()">x</a>',
        encoding="utf-8",
    )
    return path


@pytest.fixture
def mock_network(monkeypatch, sample_page):
    """Route the CLI's HTTP backend through an in-memory transport."""
    routes = {
        PAGE_URL: (200, sample_page.encode("utf-8")),
        "https://shop.example.com/styles/main.css": (200, b"body { color: #333; }"),
        "https://shop.example.com/img/logo.png": (200, b"\x89PNG"),
    }

    def handler(request: httpx.Request) -> httpx.Response:
        status, body = routes.get(str(request.url), (404, b"not found"))
        return httpx.Response(status, content=body)

    def create_backend(config, cache_dir):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpCaptureBackend(base_dir=cache_dir, client=client)

    monkeypatch.setattr(cli_module, "create_backend", create_backend)
    return routes


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"Page Picker v{__version__}" in result.output


class TestSanitizeCommand:
    """Tests for the sanitize command."""

    def test_sanitize_to_stdout(self, html_file):
        result = runner.invoke(app, ["sanitize", str(html_file)])

        assert result.exit_code == 0
        assert "track()" not in result.output
        assert "go()" not in result.output
        assert '<li class="item">A</li>' in result.output

    def test_sanitize_to_file(self, html_file, tmp_path):
        out = tmp_path / "out" / "clean.html"
        result = runner.invoke(app, ["sanitize", str(html_file), "--out", str(out)])

        assert result.exit_code == 0
        assert "<script" not in out.read_text(encoding="utf-8")

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["sanitize", str(tmp_path / "absent.html")])

        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "File not found" in result.output


class TestPreviewCommand:
    """Tests for the preview command."""

    def test_preview(self, html_file):
        result = runner.invoke(app, ["preview", str(html_file), "li.item"])

        assert result.exit_code == 0
        assert "li.item: 2 match(es)" in result.output
        assert "1. A" in result.output
        assert "2. B" in result.output

    def test_preview_json(self, html_file):
        result = runner.invoke(app, ["preview", str(html_file), "li.item", "--json", "--limit", "1"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["matches"] == 2
        assert [match["text"] for match in payload["results"]] == ["A"]

    def test_invalid_selector(self, html_file):
        result = runner.invoke(app, ["preview", str(html_file), "li["])

        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Invalid selector" in result.output


class TestValidateConfigCommand:
    """Tests for the validate-config command."""

    def test_valid(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("sandbox:\n  ready_max_attempts: 4\n")
        result = runner.invoke(app, ["validate-config", str(path), "--verbose"])

        assert result.exit_code == 0
        assert "is valid" in result.output
        assert '"ready_max_attempts": 4' in result.output

    def test_invalid(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("browser:\n  engine: opera\n")
        result = runner.invoke(app, ["validate-config", str(path)])

        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Configuration error" in result.output

    def test_missing(self, tmp_path):
        result = runner.invoke(app, ["validate-config", str(tmp_path / "absent.yaml")])
        assert result.exit_code == ExitCode.CONFIG_ERROR


class TestCaptureCommand:
    """Tests for the capture command."""

    def test_capture_to_file(self, mock_network, tmp_path):
        out = tmp_path / "final.html"
        result = runner.invoke(app, [
            "capture", PAGE_URL,
            "--out", str(out),
            "--cache-dir", str(tmp_path),
        ])

        assert result.exit_code == 0, result.output
        assert "✅ Captured" in result.output
        html = out.read_text(encoding="utf-8")
        assert f'<script id="{NAVIGATION_SCRIPT_ID}">' in html
        assert "body { color: #333; }" in html
        assert "data:image/png;base64," in html
        assert (tmp_path / "saved_pages" / "index.json").exists()

    def test_capture_without_inlining(self, mock_network, tmp_path):
        out = tmp_path / "final.html"
        result = runner.invoke(app, [
            "capture", PAGE_URL,
            "--out", str(out),
            "--cache-dir", str(tmp_path),
            "--no-inline",
        ])

        assert result.exit_code == 0, result.output
        assert '<link rel="stylesheet" href="/styles/main.css">' in out.read_text(encoding="utf-8")

    def test_capture_failure(self, mock_network, tmp_path):
        result = runner.invoke(app, [
            "capture", "https://shop.example.com/missing",
            "--cache-dir", str(tmp_path),
        ])

        assert result.exit_code == ExitCode.LOAD_FAILED
        assert "HTTP 404" in result.output

    def test_capture_invalid_url(self, mock_network, tmp_path):
        result = runner.invoke(app, ["capture", "not a url", "--cache-dir", str(tmp_path)])

        assert result.exit_code == ExitCode.LOAD_FAILED
        assert "Invalid URL" in result.output
