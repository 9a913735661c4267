"""Tests for CLI commands"""

from unittest.mock import Mock, patch

import httpx
import pytest
from typer.testing import CliRunner

from cli.client.base import APIClient, ImageBotError
from cli.main import app


# Test fixtures
@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


@pytest.fixture
def mock_client():
    """Mock API client usable as a context manager"""
    client = Mock()
    client.__enter__ = Mock(return_value=client)
    client.__exit__ = Mock(return_value=None)
    return client


class TestMainCommands:
    """Test main CLI commands"""

    def test_version(self, runner):
        """Test version command"""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "Image Bot CLI" in result.stdout

    @patch("cli.main.ImageBotClient")
    def test_status_success(self, mock_client_class, runner, mock_client):
        """Test status command with successful connection"""
        mock_client.health_check.return_value = {
            "version": "1.0.0",
            "environment": "development",
            "jobs": {"queue_depth": 4},
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Connected Successfully" in result.stdout
        mock_client_class.assert_called_once_with("http://localhost:8000")

    @patch("cli.main.ImageBotClient")
    def test_status_failure(self, mock_client_class, runner, mock_client):
        """Test status command with connection failure"""
        mock_client.health_check.side_effect = ImageBotError("Connection failed")
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "Connection Failed" in result.stdout

    @patch("cli.main.ImageBotClient")
    def test_api_url_option(self, mock_client_class, runner, mock_client):
        mock_client.health_check.return_value = {}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["--api-url", "http://bot:9000", "status"])
        assert result.exit_code == 0
        mock_client_class.assert_called_once_with("http://bot:9000")


class TestJobCommands:
    """Test job commands"""

    @patch("cli.commands.jobs.ImageBotClient")
    def test_enqueue(self, mock_client_class, runner, mock_client):
        mock_client.enqueue_job.return_value = {"job_id": 7, "status": "pending"}
        mock_client_class.return_value = mock_client

        result = runner.invoke(
            app,
            ["jobs", "enqueue", "generate-image", "--payload", '{"jobId": "t1", "chatId": "c1"}'],
        )

        assert result.exit_code == 0
        assert "Job 7 enqueued" in result.stdout
        mock_client.enqueue_job.assert_called_once_with(
            "generate-image", {"jobId": "t1", "chatId": "c1"}
        )

    def test_enqueue_invalid_payload(self, runner):
        result = runner.invoke(app, ["jobs", "enqueue", "generate-image", "--payload", "{oops"])

        assert result.exit_code == 1
        assert "not valid JSON" in result.stdout

    @patch("cli.commands.jobs.ImageBotClient")
    def test_show(self, mock_client_class, runner, mock_client):
        mock_client.get_job.return_value = {
            "id": 7,
            "type": "generate-image",
            "status": "failed",
            "payload": {"jobId": "t1"},
            "result": None,
            "error": "Max polling attempts (200) reached for job t1",
            "created_at": "2026-10-18T09:00:00",
            "started_at": "2026-10-18T09:00:01",
            "completed_at": "2026-10-18T10:40:00",
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "show", "7"])

        assert result.exit_code == 0
        assert "Job 7" in result.stdout
        assert "failed" in result.stdout
        mock_client.get_job.assert_called_once_with(7)

    @patch("cli.commands.jobs.ImageBotClient")
    def test_show_missing(self, mock_client_class, runner, mock_client):
        mock_client.get_job.side_effect = ImageBotError("API Error 404: Job not found")
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "show", "99"])

        assert result.exit_code == 1
        assert "Failed to get job 99" in result.stdout

    @patch("cli.commands.jobs.ImageBotClient")
    def test_stats(self, mock_client_class, runner, mock_client):
        mock_client.get_job_stats.return_value = {
            "by_status": {"pending": 2, "running": 1, "completed": 5, "failed": 0},
            "queue_depth": 3,
            "active_jobs": 1,
            "concurrency": 10,
            "ticking": True,
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "stats"])

        assert result.exit_code == 0
        assert "Job Queue" in result.stdout
        assert "1/10" in result.stdout


class TestAPIClient:
    """Test the envelope handling of the HTTP client"""

    def test_unwraps_success_envelope(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"ok": True, "data": {"job_id": 1}})
        )
        with APIClient(transport=transport) as client:
            assert client.post("/jobs", json={"type": "x"}) == {"job_id": 1}

    def test_error_envelope_raises(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                404, json={"ok": False, "error": {"message": "Job not found"}}
            )
        )
        with APIClient(transport=transport) as client:
            with pytest.raises(ImageBotError, match="Job not found"):
                client.get("/jobs/1")

    def test_requests_are_versioned(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"ok": True, "data": {}})

        with APIClient(transport=httpx.MockTransport(handler)) as client:
            client.get("/healthz")

        assert seen == ["/v1/healthz"]
