"""
Unit tests for the claude-code-step command line.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from claude_code_step.cli.step_cli import _item_from_options, app
from claude_code_step.errors import ClaudeCodeError, ErrorKind
from claude_code_step.types import StepResult, TokenUsage

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_log_handlers():
    with patch("claude_code_step.cli.step_cli.setup_logging"):
        yield


@pytest.fixture
def mock_step():
    with patch("claude_code_step.cli.step_cli.ClaudeCodeStep") as step_class:
        step = step_class.return_value
        step.execute_item = AsyncMock()
        step.execute_batch = AsyncMock()
        yield step


class TestArgsCommand:
    def test_prints_arguments(self, tmp_path):
        item = tmp_path / "item.yaml"
        item.write_text(
            "prompt: Review the diff\n"
            "model: sonnet\n"
            "toolControl: none\n"
            "additionalOptions:\n"
            "  verbose: true\n"
        )

        result = runner.invoke(app, ["args", str(item)])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [
            "-p",
            "--output-format",
            "json",
            "Review the diff",
            "--model",
            "sonnet",
            "--tools",
            "none",
            "--verbose",
        ]

    def test_validation_errors_exit_non_zero(self, tmp_path):
        item = tmp_path / "item.json"
        item.write_text(json.dumps({"prompt": "", "customAgents": "{x"}))

        result = runner.invoke(app, ["args", str(item)])

        assert result.exit_code == 1
        assert "VALIDATION_ERROR" in result.output
        assert "Prompt is required, Custom Agents must be valid JSON" in result.output


class TestRunCommand:
    def test_success_prints_record(self, mock_step):
        mock_step.execute_item.return_value = StepResult(
            result="Done",
            exit_code=0,
            raw={"result": "Done"},
            session_id="s-9",
            usage=TokenUsage(input_tokens=3, output_tokens=4),
        )

        result = runner.invoke(
            app,
            [
                "run",
                "--prompt",
                "hello",
                "--model",
                "haiku",
                "--session-mode",
                "continue",
                "--timeout",
                "30",
                "--add-dir",
                "/a,/b",
                "--cwd",
                "/repo",
            ],
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "result": "Done",
            "sessionId": "s-9",
            "usage": {"inputTokens": 3, "outputTokens": 4},
            "exitCode": 0,
            "raw": {"result": "Done"},
        }
        item = mock_step.execute_item.await_args.args[0]
        assert item["prompt"] == "hello"
        assert item["session_mode"] == "continue"
        assert item["working_directory"] == "/repo"
        assert item["additional_options"] == {"timeout": 30.0, "additional_dirs": "/a,/b"}

    def test_failure_reports_context(self, mock_step):
        mock_step.execute_item.side_effect = ClaudeCodeError(
            ErrorKind.EXECUTION_ERROR,
            "Claude CLI exited with code 2: boom",
            exit_code=2,
            stderr="boom",
        )

        result = runner.invoke(app, ["run", "--prompt", "hello"])

        assert result.exit_code == 1
        assert "[EXECUTION_ERROR] Claude CLI exited with code 2: boom" in result.output
        assert '"exitCode": 2' in result.output

    @pytest.mark.parametrize(
        "preset, expected",
        [
            ("Read Only", "Read,Glob,Grep"),
            ("All Tools", "default"),
            ("Read,Bash", "Read,Bash"),
        ],
    )
    def test_tool_preset_names_resolved(self, mock_step, preset, expected):
        mock_step.execute_item.return_value = StepResult(result="ok", exit_code=0)

        result = runner.invoke(
            app,
            ["run", "--prompt", "hi", "--tool-control", "preset", "--tool-preset", preset],
        )

        assert result.exit_code == 0
        item = mock_step.execute_item.await_args.args[0]
        assert item["tool_preset"] == expected

    def test_prompt_required(self):
        result = runner.invoke(app, ["run"])
        assert result.exit_code != 0


class TestBatchCommand:
    def test_runs_items(self, mock_step, tmp_path):
        items = tmp_path / "items.yaml"
        items.write_text("- prompt: one\n- prompt: two\n  model: opus\n")
        mock_step.execute_batch.return_value = [{"result": "1"}, {"error": "nope"}]

        result = runner.invoke(app, ["batch", str(items), "--continue-on-fail"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [{"result": "1"}, {"error": "nope"}]
        call = mock_step.execute_batch.await_args
        assert call.args[0] == [{"prompt": "one"}, {"prompt": "two", "model": "opus"}]
        assert call.kwargs["continue_on_fail"] is True

    def test_items_key_accepted(self, mock_step, tmp_path):
        items = tmp_path / "items.json"
        items.write_text(json.dumps({"items": [{"prompt": "one"}]}))
        mock_step.execute_batch.return_value = [{"result": "1"}]

        result = runner.invoke(app, ["batch", str(items)])

        assert result.exit_code == 0
        assert mock_step.execute_batch.await_args.args[0] == [{"prompt": "one"}]

    def test_rejects_non_list(self, mock_step, tmp_path):
        items = tmp_path / "items.yaml"
        items.write_text("just a string\n")

        result = runner.invoke(app, ["batch", str(items)])

        assert result.exit_code == 2
        mock_step.execute_batch.assert_not_awaited()


def test_item_from_options_drops_unset():
    item = _item_from_options(prompt="hi", model=None, verbose=True, timeout=None)
    assert item == {"prompt": "hi", "additional_options": {"verbose": True}}
