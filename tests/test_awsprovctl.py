"""Unit tests for the awsprovctl command line client."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests
from click.testing import CliRunner

from awsprovctl import ProviderCLI, cli

API = "http://provider.test/api/v1"
ARN = "arn:aws:elasticloadbalancing:us-east-1:123456789012:targetgroup/web/0123456789abcdef"
STATE = {"id": ARN, "target_group_arn": ARN, "target": []}


def fake_response(payload=None, status=200):
    response = MagicMock()
    response.status_code = status
    response.content = json.dumps(payload).encode() if payload is not None else b""
    response.json.return_value = payload
    if status >= 400:
        error = requests.exceptions.HTTPError(f"{status} Error")
        error.response = response
        response.raise_for_status.side_effect = error
    return response


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, *args, **kwargs):
    return runner.invoke(cli, ["--api-url", API, *args], **kwargs)


class TestProviderCLI:
    """Tests for the request helper."""

    def test_empty_body(self):
        with patch("awsprovctl.requests.request", return_value=fake_response(status=204)):
            assert ProviderCLI(API)._make_request("DELETE", "/resources/x/y") == {}

    def test_error_returns_none(self):
        response = fake_response({"detail": "invalid spec"}, status=422)
        with patch("awsprovctl.requests.request", return_value=response):
            assert ProviderCLI(API)._make_request("POST", "/resources/x") is None

    def test_trailing_slash_stripped(self):
        with patch("awsprovctl.requests.request", return_value=fake_response([])) as mock:
            ProviderCLI(API + "/")._make_request("GET", "/resources")

        assert mock.call_args.args == ("GET", f"{API}/resources")


class TestCommands:
    """Tests for the click commands."""

    def test_types(self, runner):
        payload = [
            {
                "name": "aws_macie2_custom_data_identifier",
                "version": "1.0.0",
                "spec_schema": {},
                "requires_replace": ["name", "regex"],
            }
        ]
        with patch("awsprovctl.requests.request", return_value=fake_response(payload)):
            result = invoke(runner, "types")

        assert result.exit_code == 0
        assert "aws_macie2_custom_data_identifier" in result.output
        assert "name, regex" in result.output

    def test_apply_yaml(self, runner, tmp_path):
        doc = tmp_path / "tg.yaml"
        doc.write_text(
            "type: aws_lb_target_group_registration\n"
            "spec:\n"
            f"  target_group_arn: {ARN}\n"
            "  target:\n"
            "    - target_id: i-1\n"
        )
        body = {
            "resource_type": "aws_lb_target_group_registration",
            "resource_id": ARN,
            "state": STATE,
        }

        with patch("awsprovctl.requests.request", return_value=fake_response(body)) as mock:
            result = invoke(runner, "apply", str(doc))

        assert result.exit_code == 0
        assert f"Created aws_lb_target_group_registration {ARN}" in result.output
        method, url = mock.call_args.args
        assert (method, url) == ("POST", f"{API}/resources/aws_lb_target_group_registration")
        assert mock.call_args.kwargs["json"]["spec"]["target"] == [{"target_id": "i-1"}]

    def test_apply_requires_type(self, runner, tmp_path):
        doc = tmp_path / "bad.json"
        doc.write_text(json.dumps({"spec": {}}))

        result = invoke(runner, "apply", str(doc))

        assert result.exit_code != 0
        assert "type" in result.output

    def test_apply_failure_exit_code(self, runner, tmp_path):
        doc = tmp_path / "tg.json"
        doc.write_text(json.dumps({"type": "aws_lb_target_group_registration", "spec": {}}))
        response = fake_response({"detail": "invalid spec"}, status=422)

        with patch("awsprovctl.requests.request", return_value=response):
            result = invoke(runner, "apply", str(doc))

        assert result.exit_code == 1

    def test_get_no_refresh(self, runner):
        body = {"resource_type": "t", "resource_id": ARN, "state": STATE}
        with patch("awsprovctl.requests.request", return_value=fake_response(body)) as mock:
            result = invoke(runner, "get", "t", ARN, "--no-refresh", "-o", "yaml")

        assert result.exit_code == 0
        assert f"id: {ARN}" in result.output
        assert mock.call_args.kwargs["params"] == {"refresh": "false"}

    def test_update_accepts_bare_spec(self, runner, tmp_path):
        doc = tmp_path / "spec.json"
        doc.write_text(json.dumps({"status": "Disabled"}))
        body = {"resource_type": "t", "resource_id": "us-east-1", "state": {"status": "Disabled"}}

        with patch("awsprovctl.requests.request", return_value=fake_response(body)) as mock:
            result = invoke(runner, "update", "t", "us-east-1", str(doc))

        assert result.exit_code == 0
        assert mock.call_args.kwargs["json"] == {"spec": {"status": "Disabled"}}

    def test_delete_confirmed(self, runner):
        with patch("awsprovctl.requests.request", return_value=fake_response(status=204)):
            result = invoke(runner, "delete", "t", "id-1", "--yes")

        assert result.exit_code == 0
        assert "Deleted t id-1" in result.output

    def test_delete_aborted(self, runner):
        with patch("awsprovctl.requests.request") as mock:
            result = invoke(runner, "delete", "t", "id-1", input="n\n")

        assert result.exit_code != 0
        mock.assert_not_called()

    def test_import(self, runner):
        body = {"resource_type": "t", "resource_id": "id-1", "state": {"id": "id-1"}}
        with patch("awsprovctl.requests.request", return_value=fake_response(body)) as mock:
            result = invoke(runner, "import", "t", "id-1")

        assert result.exit_code == 0
        assert mock.call_args.kwargs["json"] == {"id": "id-1"}

    def test_history(self, runner):
        payload = [
            {
                "id": 3,
                "operation": "read",
                "success": False,
                "drift_detected": True,
                "duration_seconds": 0.25,
                "error_message": "reading Macie Custom Data Identifier (x): boom",
                "operation_time": "2024-01-01T00:00:00Z",
            }
        ]
        with patch("awsprovctl.requests.request", return_value=fake_response(payload)):
            result = invoke(runner, "history", "t", "x", "-l", "5")

        assert result.exit_code == 0
        assert "0.25" in result.output
        assert "boom" in result.output
