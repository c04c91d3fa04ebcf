from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from liquidvote.api.client import GovernanceClient
from liquidvote.api.errors import GovernanceError
from liquidvote.config import get_settings
from liquidvote.handlers.actions import ActionOutcome
from liquidvote.handlers.authoring import SuggestionAuthoring, SuggestionDraft
from liquidvote.handlers.delegates import DelegateDirectory
from liquidvote.handlers.panel import PanelView, VotingPanelController
from liquidvote.handlers.suggestions import SuggestionPanel
from liquidvote.models.proposal import Proposal
from liquidvote.ops import events
from liquidvote.ops.events import (
    ActivityEvent,
    configure_activity_logging,
    new_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="liquidvote", description="Inspect and act on a proposal")
    parser.add_argument(
        "--activity",
        type=int,
        default=0,
        metavar="N",
        help="print the N most recent activity events after the command",
    )
    parser.add_argument("--activity-level", choices=["info", "warning", "error"], default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="show voting status and results")
    status.add_argument("proposal_id")

    vote = sub.add_parser("vote", help="vote directly for an option")
    vote.add_argument("proposal_id")
    vote.add_argument("option_number", type=int)

    delegate = sub.add_parser("delegate", help="delegate your vote to another member")
    delegate.add_argument("proposal_id")
    delegate.add_argument("target_user")

    suggestions = sub.add_parser("suggestions", help="list suggestions for a proposal")
    suggestions.add_argument("proposal_id")

    apply = sub.add_parser("apply", help="apply a suggestion")
    apply.add_argument("proposal_id")
    apply.add_argument("suggestion_id")

    suggest = sub.add_parser("suggest", help="publish a suggestion under one of your categories")
    suggest.add_argument("proposal_id")
    suggest.add_argument("category_id")
    target = suggest.add_mutually_exclusive_group(required=True)
    target.add_argument("--option", type=int, dest="option_number")
    target.add_argument("--delegate", dest="target_user")

    members = sub.add_parser("members", help="search organization members to delegate to")
    members.add_argument("query")
    return parser


def render_view(view: PanelView) -> str:
    lines = [f"State: {view.state}", f"Deadline: {view.deadline.status} ({view.deadline.remaining_text})"]
    lines.append(f"Participation: {view.participation}")
    lines.extend(f"! {banner}" for banner in view.banners)
    if view.show_action_controls:
        lines.append(f"Actions: {'enabled' if view.actions_enabled else 'disabled'}")
    if view.results is not None:
        lines.append(view.results.headline)
        for row in view.results.rows:
            lines.append(f"  {row.option_number}. {row.option_text}: {row.votes} ({row.percentage:.1f}%)")
        lines.append(f"  {view.results.participation_summary}")
    return "\n".join(lines)


def render_activity(entries: list[ActivityEvent]) -> str:
    lines = []
    for entry in entries:
        line = f"{entry['timestamp']} {entry['level'].upper():7} {entry['event_type']}: {entry['message']}"
        if entry["correlation_id"]:
            line += f" [{entry['correlation_id']}]"
        lines.append(line)
    return "\n".join(lines)


def _print_outcome(outcome: ActionOutcome) -> int:
    print(outcome.message)
    return 0 if outcome.ok else 1


async def _run_suggestions(
    args: argparse.Namespace, client: GovernanceClient, panel: VotingPanelController
) -> int:
    suggestions = SuggestionPanel(client, panel.controller, panel.store, panel.bus)
    try:
        await suggestions.load()
        if args.command == "apply":
            try:
                return _print_outcome(await suggestions.apply(args.suggestion_id))
            except KeyError:
                print(f"Unknown suggestion {args.suggestion_id}")
                return 1
        for item in suggestions.items():
            print(
                f"[{item.label}] {item.suggestion.suggestion_id} {item.category_title}: "
                f"{item.target_text} ({item.created_text})"
            )
        return 0
    finally:
        suggestions.close()


async def _run_suggest(args: argparse.Namespace, client: GovernanceClient, proposal: Proposal) -> int:
    settings = get_settings()
    authoring = SuggestionAuthoring(client, proposal, cutoff_minutes=settings.suggestion_cutoff_minutes)
    await authoring.load_categories()
    if not authoring.can_create:
        print("You cannot create suggestions for this proposal")
        return 1
    draft = SuggestionDraft(
        category_id=args.category_id,
        suggestion_type="delegate" if args.target_user else "vote_option",
        target_option_number=args.option_number,
        target_user=args.target_user or "",
    )
    result = await authoring.submit(draft)
    if not result.ok:
        for error in result.errors:
            print(error)
        return 1
    print("Suggestion created")
    return 0


async def _run_members(args: argparse.Namespace, client: GovernanceClient) -> int:
    directory = DelegateDirectory(client, limit=get_settings().delegate_autocomplete_limit)
    await directory.load()
    for user in directory.search(args.query):
        print(f"@{user.unique_id} {user.full_name}".rstrip())
    return 0


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    set_correlation_id(new_correlation_id())
    async with GovernanceClient(settings) as client:
        if args.command == "members":
            return await _run_members(args, client)
        proposal = await client.get_proposal(args.proposal_id)
        if args.command == "suggest":
            return await _run_suggest(args, client, proposal)
        panel = VotingPanelController(client, proposal, settings=settings)
        try:
            await panel.start()
            if args.command == "vote":
                return _print_outcome(await panel.vote(args.option_number))
            if args.command == "delegate":
                return _print_outcome(await panel.delegate(args.target_user))
            if args.command in {"suggestions", "apply"}:
                return await _run_suggestions(args, client, panel)
            print(render_view(panel.view()))
            return 0
        finally:
            panel.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    configure_activity_logging(settings.activity_buffer_size)
    try:
        code = asyncio.run(run(args))
    except GovernanceError as exc:
        logger.error("%s", exc.message, extra={"event_type": "cli.failed"})
        code = 2
    if args.activity > 0:
        print(render_activity(events.activity_buffer.recent(limit=args.activity, level=args.activity_level)))
    return code


if __name__ == "__main__":
    sys.exit(main())
