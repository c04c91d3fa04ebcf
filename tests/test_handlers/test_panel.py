from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from liquidvote.api.errors import NetworkFailure, RateLimited, StatusUnknown
from liquidvote.config import Settings
from liquidvote.handlers.actions import COOLDOWN_MESSAGE
from liquidvote.handlers.panel import (
    RESULTS_PENDING_TEXT,
    VotingPanelController,
    describe_participation,
)
from liquidvote.handlers.status_store import StatusSnapshot
from tests.fixtures.governance_data import (
    NOW,
    ManualScheduler,
    MutableClock,
    fixed_clock,
    make_client,
    make_proposal,
    make_status,
    make_status_response,
)

RESULTS = {
    "optionResults": {"1": 6, "2": 3, "3": 1},
    "metadata": {"totalVotingPower": 10, "totalVotesCast": 7, "winningOption": 1},
}


def _panel(client=None, *, proposal=None, scheduler=None, clock=None, on_change=None):
    client = client or make_client()
    proposal = proposal or make_proposal()
    panel = VotingPanelController(
        client,
        proposal,
        settings=Settings(api_base_url="https://governance.example.org/api"),
        scheduler=scheduler or ManualScheduler(),
        clock=clock or fixed_clock(),
        on_change=on_change,
    )
    return panel, client


# --- lifecycle ---


@pytest.mark.asyncio
async def test_loading_until_first_status_then_ready() -> None:
    panel, _ = _panel()
    assert panel.phase == "LOADING"
    assert panel.actions_enabled is False
    assert panel.view().participation == "Loading voting status..."

    view = await panel.start()
    assert view.phase == "READY"
    assert view.state == "READY(ENDING_SOON)"
    assert view.actions_enabled is True
    assert view.participation == "You have not voted yet"


@pytest.mark.asyncio
async def test_far_deadline_is_active() -> None:
    panel, _ = _panel(proposal=make_proposal(deadline=NOW + timedelta(days=3)))
    view = await panel.start()
    assert view.state == "READY(ACTIVE)"
    assert view.deadline.remaining_text == "3 days left"


@pytest.mark.asyncio
async def test_unknown_status_keeps_actions_disabled() -> None:
    client = make_client()
    client.get_voting_status.side_effect = StatusUnknown("unavailable")
    panel, _ = _panel(client)
    view = await panel.start()
    assert view.phase == "LOADING"
    assert view.actions_enabled is False
    assert view.participation == "Voting status unavailable"


@pytest.mark.asyncio
async def test_expired_with_pending_results() -> None:
    proposal = make_proposal(deadline=NOW - timedelta(hours=1))
    client = make_client()
    client.get_voting_status.return_value = make_status_response(is_active=False, voted_option=2)
    panel, _ = _panel(client, proposal=proposal)

    view = await panel.start()
    assert view.phase == "EXPIRED"
    assert view.state == "EXPIRED(results-pending)"
    assert view.show_action_controls is False
    assert view.actions_enabled is False
    assert view.results is None
    assert view.results_pending is True
    assert RESULTS_PENDING_TEXT in view.banners
    assert view.participation.startswith("You voted for Option 2")
    assert view.deadline.remaining_text == "Voting has ended"


@pytest.mark.asyncio
async def test_expired_with_results_available() -> None:
    proposal = make_proposal(deadline=NOW - timedelta(hours=1), vote_results=RESULTS)
    panel, _ = _panel(proposal=proposal)
    view = await panel.start()
    assert view.state == "EXPIRED(results-available)"
    assert view.results is not None
    assert view.results.headline == "Winner: Option 1"
    assert view.results_pending is False


@pytest.mark.asyncio
async def test_deadline_crossing_is_sticky() -> None:
    clock = MutableClock(NOW)
    panel, _ = _panel(proposal=make_proposal(deadline=NOW + timedelta(minutes=5)), clock=clock)
    await panel.start()
    assert panel.phase == "READY"

    clock.advance(minutes=6)
    assert panel.tick().phase == "EXPIRED"

    clock.now = NOW
    assert panel.phase == "EXPIRED"


@pytest.mark.asyncio
async def test_server_inactive_marks_expired_before_deadline() -> None:
    client = make_client()
    client.get_voting_status.return_value = make_status_response(is_active=False)
    panel, _ = _panel(client)
    view = await panel.start()
    assert view.phase == "EXPIRED"
    assert view.show_action_controls is False


# --- cooldown ---


@pytest.mark.asyncio
async def test_rate_limited_vote_arms_recheck_and_reenables_after_it_fires() -> None:
    scheduler = ManualScheduler()
    client = make_client()
    panel, _ = _panel(client, scheduler=scheduler)
    await panel.start()

    client.cast_vote.side_effect = RateLimited("Cooldown active", retry_after=60)
    client.get_voting_status.return_value = make_status_response(cooldown_active=True)

    outcome = await panel.vote(1)
    assert outcome.kind == "rate_limited"
    assert len(scheduler.pending) == 1
    assert scheduler.pending[0].delay == 61.0
    view = panel.view()
    assert view.actions_enabled is False
    assert view.state == "READY(cooldown)"
    assert COOLDOWN_MESSAGE in view.banners

    client.get_voting_status.return_value = make_status_response(cooldown_active=False)
    assert await scheduler.fire_all() == 1
    assert panel.actions_enabled is True
    assert scheduler.pending == []


@pytest.mark.asyncio
async def test_cooldown_reported_by_status_blocks_vote_without_request() -> None:
    scheduler = ManualScheduler()
    client = make_client()
    client.get_voting_status.return_value = make_status_response(cooldown_active=True)
    panel, _ = _panel(client, scheduler=scheduler)
    await panel.start()

    outcome = await panel.vote(1)
    assert outcome.kind == "rate_limited"
    client.cast_vote.assert_not_awaited()
    assert len(scheduler.pending) == 1


@pytest.mark.asyncio
async def test_close_cancels_pending_recheck() -> None:
    scheduler = ManualScheduler()
    client = make_client()
    client.get_voting_status.return_value = make_status_response(cooldown_active=True)
    panel, _ = _panel(client, scheduler=scheduler)
    await panel.start()
    assert len(scheduler.pending) == 1

    panel.close()
    assert scheduler.pending == []
    assert panel.closed is True
    assert await scheduler.fire_all() == 0
    assert client.get_voting_status.await_count == 1


@pytest.mark.asyncio
async def test_expiry_cancels_pending_recheck() -> None:
    scheduler = ManualScheduler()
    clock = MutableClock(NOW)
    client = make_client()
    client.get_voting_status.return_value = make_status_response(cooldown_active=True)
    panel, _ = _panel(client, scheduler=scheduler, clock=clock)
    await panel.start()
    assert len(scheduler.pending) == 1

    clock.advance(hours=1)
    panel.tick()
    assert scheduler.pending == []


@pytest.mark.asyncio
async def test_recheck_after_deadline_skips_status_request() -> None:
    scheduler = ManualScheduler()
    clock = MutableClock(NOW)
    client = make_client()
    client.get_voting_status.return_value = make_status_response(cooldown_active=True)
    panel, _ = _panel(
        client,
        proposal=make_proposal(deadline=NOW + timedelta(seconds=30)),
        scheduler=scheduler,
        clock=clock,
    )
    await panel.start()
    assert len(scheduler.pending) == 1

    clock.advance(seconds=61)
    assert await scheduler.fire_all() == 1
    assert client.get_voting_status.await_count == 1
    assert panel.phase == "EXPIRED"
    assert scheduler.pending == []


# --- actions and notices ---


@pytest.mark.asyncio
async def test_successful_vote_updates_participation_and_notices() -> None:
    client = make_client()
    on_change = MagicMock()
    panel, _ = _panel(client, on_change=on_change)
    await panel.start()

    client.get_voting_status.return_value = make_status_response(voted_option=1)
    outcome = await panel.vote(1)
    assert outcome.ok is True
    view = panel.view()
    assert view.participation == 'You voted for Option 1 "Option text 1"'
    assert view.notices[0].level == "success"
    assert on_change.called


@pytest.mark.asyncio
async def test_network_failure_becomes_error_notice() -> None:
    client = make_client()
    client.delegate.side_effect = NetworkFailure("connection reset")
    panel, _ = _panel(client)
    await panel.start()

    outcome = await panel.delegate("bob")
    assert outcome.kind == "network"
    assert panel.notices[-1].level == "error"

    panel.dismiss_notice(0)
    assert panel.notices == []


@pytest.mark.asyncio
async def test_vote_after_expiry_is_rejected_with_notice() -> None:
    panel, client = _panel(proposal=make_proposal(deadline=NOW - timedelta(minutes=1)))
    await panel.start()
    outcome = await panel.vote(1)
    assert outcome.kind == "period_ended"
    assert panel.notices[-1].kind == "period_ended"
    client.cast_vote.assert_not_awaited()


@pytest.mark.asyncio
async def test_vote_retries_unknown_status_first() -> None:
    client = make_client()
    client.get_voting_status.side_effect = [
        StatusUnknown("down"),
        make_status_response(),
        make_status_response(voted_option=2),
    ]
    panel, _ = _panel(client)
    await panel.start()
    assert panel.store.snapshot.state == "unknown"

    outcome = await panel.vote(2)
    assert outcome.ok is True
    client.cast_vote.assert_awaited_once_with("prop-1", 2)


# --- proposal refresh ---


@pytest.mark.asyncio
async def test_refresh_proposal_attaches_results() -> None:
    proposal = make_proposal(deadline=NOW - timedelta(hours=1))
    client = make_client()
    client.get_proposal.return_value = make_proposal(
        deadline=NOW - timedelta(hours=1), vote_results=RESULTS
    )
    panel, _ = _panel(client, proposal=proposal)
    await panel.start()
    assert panel.view().results_pending is True

    await panel.refresh_proposal()
    view = panel.view()
    assert view.results_pending is False
    assert view.state == "EXPIRED(results-available)"


@pytest.mark.asyncio
async def test_refresh_proposal_failure_keeps_current_proposal() -> None:
    proposal = make_proposal(deadline=NOW - timedelta(hours=1))
    client = make_client()
    client.get_proposal.side_effect = NetworkFailure("timeout")
    panel, _ = _panel(client, proposal=proposal)
    assert await panel.refresh_proposal() is proposal


# --- participation text ---


def test_participation_for_delegation() -> None:
    snapshot = StatusSnapshot(state="known", status=make_status(delegate_to="bob"), is_active=True)
    assert describe_participation(snapshot) == "You delegated to @bob (Bob Builder)"


def test_participation_for_unknown_status() -> None:
    snapshot = StatusSnapshot(state="unknown")
    assert describe_participation(snapshot) == "Voting status unavailable"
    assert snapshot.cooldown_active is None
