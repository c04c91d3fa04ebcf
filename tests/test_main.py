from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from liquidvote.__main__ import (
    _run_members,
    _run_suggest,
    build_parser,
    main,
    render_activity,
    render_view,
)
from liquidvote.config import Settings
from liquidvote.handlers.panel import VotingPanelController
from liquidvote.models.category import Category
from liquidvote.models.user import OrganizationUser
from tests.fixtures.governance_data import NOW, ManualScheduler, fixed_clock, make_client, make_proposal


def test_parser_vote_arguments() -> None:
    args = build_parser().parse_args(["vote", "prop-1", "2"])
    assert args.command == "vote"
    assert args.option_number == 2


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@pytest.mark.asyncio
async def test_render_expired_view_with_results() -> None:
    proposal = make_proposal(
        deadline=NOW - timedelta(hours=2),
        vote_results={
            "optionResults": {"1": 3, "2": 1},
            "metadata": {"totalVotingPower": 4, "totalVotesCast": 4, "winningOption": 1},
        },
    )
    panel = VotingPanelController(
        make_client(),
        proposal,
        settings=Settings(_env_file=None, api_base_url="https://x.example"),
        scheduler=ManualScheduler(),
        clock=fixed_clock(),
    )
    view = await panel.start()
    text = render_view(view)
    assert "State: EXPIRED(results-available)" in text
    assert "Winner: Option 1" in text
    assert "1. Plant fruit trees: 3 (75.0%)" in text
    assert "Actions:" not in text


def test_parser_suggest_requires_single_target() -> None:
    args = build_parser().parse_args(["suggest", "prop-1", "cat-1", "--delegate", "bob"])
    assert args.target_user == "bob"
    assert args.option_number is None
    with pytest.raises(SystemExit):
        build_parser().parse_args(["suggest", "prop-1", "cat-1"])


@pytest.mark.asyncio
async def test_members_command_prints_matches(capsys: pytest.CaptureFixture[str]) -> None:
    client = make_client()
    client.list_organization_users.return_value = [
        OrganizationUser(unique_id="bob", first_name="Bob", last_name="Lee"),
        OrganizationUser(unique_id="carol"),
    ]
    args = build_parser().parse_args(["members", "bo"])
    assert await _run_members(args, client) == 0
    assert capsys.readouterr().out.splitlines() == ["@bob Bob Lee"]


@pytest.mark.asyncio
async def test_suggest_command_submits_vote_suggestion(capsys: pytest.CaptureFixture[str]) -> None:
    client = make_client()
    client.list_organization_categories.return_value = [
        Category(category_id="cat-1", title="Gardening", created_by="alice")
    ]
    proposal = make_proposal(deadline=datetime.now(UTC) + timedelta(days=2))
    args = build_parser().parse_args(["suggest", "prop-1", "cat-1", "--option", "2"])
    assert await _run_suggest(args, client, proposal) == 0
    assert capsys.readouterr().out.strip() == "Suggestion created"
    payload = client.create_suggestion.await_args.args[0]
    assert payload.target_option_number == 2


# --- activity output ---


def test_render_activity_includes_correlation_id() -> None:
    entry = {
        "timestamp": "2026-03-01T12:00:00.000Z",
        "level": "info",
        "component": "liquidvote.handlers.cooldown",
        "event_type": "cooldown.armed",
        "message": "Cooldown re-check armed",
        "correlation_id": "corr-1",
        "payload": {},
    }
    assert render_activity([entry]) == (
        "2026-03-01T12:00:00.000Z INFO    cooldown.armed: Cooldown re-check armed [corr-1]"
    )


def test_main_prints_recent_activity(capsys: pytest.CaptureFixture[str]) -> None:
    async def fake_run(args) -> int:
        logging.getLogger("liquidvote.handlers.actions").warning(
            "vote rejected", extra={"event_type": "action.vote.failed"}
        )
        return 1

    root = logging.getLogger()
    before = list(root.handlers)
    try:
        with patch("liquidvote.__main__.run", fake_run):
            code = main(["--activity", "5", "members", "bo"])
    finally:
        for handler in root.handlers[:]:
            if handler not in before:
                root.removeHandler(handler)

    assert code == 1
    assert "WARNING action.vote.failed: vote rejected" in capsys.readouterr().out
