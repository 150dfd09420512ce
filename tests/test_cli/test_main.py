"""Test the flowpilot command.

The planner runs for real against the sample catalog; LLM and embedding calls
are answered by the autouse mocks in tests/conftest.py.
"""

import json

import pytest
from click.testing import CliRunner

from flowpilot.cli.main import main
from flowpilot.planning.ir_models import CoarsePlan, StepConfiguration

SLACK_REQUEST = "Send a Slack message when a new row is added to a spreadsheet"

PLAN = {
    "name": "Notify Slack on new rows",
    "description": "Posts a Slack message for each new spreadsheet row",
    "steps": [
        {"type": "TRIGGER", "piece_name": "google-sheets", "action_or_trigger_name": "new_row"},
        {"type": "ACTION", "piece_name": "slack", "action_or_trigger_name": "send_message"},
    ],
}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def planned(mock_llm_responses):
    mock_llm_responses.set_response(CoarsePlan, PLAN)
    mock_llm_responses.queue_responses(
        StepConfiguration,
        [
            {"inputs": [{"name": "spreadsheet_id", "value": "sheet-123"}]},
            {
                "inputs": [
                    {"name": "channel", "value": "#sales"},
                    {"name": "text", "value": "New row: {{trigger.values}}"},
                ]
            },
        ],
    )
    return mock_llm_responses


def test_prints_flow_document(runner, catalog_file, planned):
    result = runner.invoke(main, ["--catalog", str(catalog_file), "--model", "gpt-4o", SLACK_REQUEST])

    assert result.exit_code == 0, result.output
    flow = json.loads(result.stdout)
    assert flow["name"] == "Notify Slack on new rows"
    assert [step["name"] for step in flow["steps"]] == ["trigger", "step_1"]
    assert flow["steps"][0]["input"] == {"spreadsheet_id": "sheet-123"}
    assert flow["steps"][1]["input"] == {"channel": "#sales", "text": "New row: {{trigger.values}}"}
    assert flow["steps"][1]["pieceName"] == "slack"
    assert flow["steps"][1]["actionOrTriggerName"] == "send_message"


def test_request_words_are_joined(runner, catalog_file, planned):
    result = runner.invoke(main, ["--catalog", str(catalog_file), "-m", "gpt-4o", "notify", "my", "team"])

    assert result.exit_code == 0, result.output
    assert "User request: notify my team" in planned.calls_for(CoarsePlan)[0]["prompt"]


def test_events_stream_to_stderr(runner, catalog_file, planned):
    result = runner.invoke(main, ["--catalog", str(catalog_file), "-m", "gpt-4o", "--events", SLACK_REQUEST])

    assert result.exit_code == 0, result.output
    events = [json.loads(line) for line in result.stderr.splitlines() if line.startswith("{")]
    assert [event["type"] for event in events] == ["CONTEXT_FOUND", "PLAN_GENERATED", "STEP_CREATED", "STEP_CREATED"]
    assert [piece["pieceName"] for piece in events[0]["data"]["relevantPieces"]] == ["slack", "google-sheets"]


def test_output_file(runner, catalog_file, planned, tmp_path):
    output = tmp_path / "flow.json"

    result = runner.invoke(main, ["--catalog", str(catalog_file), "-m", "gpt-4o", "-o", str(output), SLACK_REQUEST])

    assert result.exit_code == 0, result.output
    assert json.loads(output.read_text())["name"] == "Notify Slack on new rows"
    assert "✅ Flow 'Notify Slack on new rows' written to" in result.stderr
    assert result.stdout == ""


def test_step_sequence_and_custom_prompt_reach_generator(runner, catalog_file, planned, tmp_path):
    prompt_file = tmp_path / "prompt.txt"
    prompt_file.write_text("You plan tiny flows.")

    result = runner.invoke(
        main,
        [
            "--catalog",
            str(catalog_file),
            "-m",
            "gpt-4o",
            "--custom-prompt-file",
            str(prompt_file),
            "--step",
            "trigger:New spreadsheet row",
            "--step",
            "ACTION:Post to Slack",
            SLACK_REQUEST,
        ],
    )

    assert result.exit_code == 0, result.output
    prompt = planned.calls_for(CoarsePlan)[0]["prompt"]
    assert prompt.startswith("You plan tiny flows.")
    assert prompt.endswith("1. [TRIGGER] New spreadsheet row\n2. [ACTION] Post to Slack")


def test_sequence_mismatch_fails(runner, catalog_file, planned):
    result = runner.invoke(
        main, ["--catalog", str(catalog_file), "-m", "gpt-4o", "--step", "TRIGGER:New row", SLACK_REQUEST]
    )

    assert result.exit_code == 1
    assert "❌ Planning failed" in result.stderr
    # Retrying cannot fix a plan that ignores the requested sequence
    assert "likely temporary" not in result.stderr


@pytest.mark.parametrize("request_words", [[" "], ["", "  "]])
def test_blank_request_is_rejected(runner, catalog_file, planned, request_words):
    result = runner.invoke(main, ["--catalog", str(catalog_file), "-m", "gpt-4o", *request_words])

    assert result.exit_code == 2
    assert "Request must not be empty" in result.stderr
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert planned.calls_for(CoarsePlan) == []


@pytest.mark.parametrize("value", ["no-separator", "LOOP:repeat", "ACTION:  "])
def test_invalid_step_option(runner, catalog_file, value):
    result = runner.invoke(main, ["--catalog", str(catalog_file), "-m", "gpt-4o", "--step", value, SLACK_REQUEST])

    assert result.exit_code == 2
    assert "--step" in result.stderr


def test_missing_model_shows_setup_help(runner, catalog_file):
    result = runner.invoke(main, ["--catalog", str(catalog_file), SLACK_REQUEST])

    assert result.exit_code == 1
    assert "No LLM API keys configured" in result.stderr


def test_missing_catalog(runner):
    result = runner.invoke(main, ["-m", "gpt-4o", SLACK_REQUEST])

    assert result.exit_code == 1
    assert "❌ No piece catalog configured" in result.stderr


def test_catalog_from_environment(runner, catalog_file, planned, monkeypatch):
    monkeypatch.setenv("FLOWPILOT_CATALOG", str(catalog_file))

    result = runner.invoke(main, ["-m", "gpt-4o", SLACK_REQUEST])

    assert result.exit_code == 0, result.output


def test_provider_failure_is_explained(runner, catalog_file, mock_llm_responses):
    mock_llm_responses.set_response(CoarsePlan, RuntimeError("401 Unauthorized: invalid api key"))

    result = runner.invoke(main, ["--catalog", str(catalog_file), "-m", "gpt-4o", "-v", SLACK_REQUEST])

    assert result.exit_code == 1
    assert "❌ Planning failed: LLM API authentication failed" in result.stderr
    assert "🔍 Technical details: Plan generation failed" in result.stderr
