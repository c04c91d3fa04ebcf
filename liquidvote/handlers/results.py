from __future__ import annotations

from pydantic import BaseModel

from liquidvote.models.proposal import Proposal, ProposalOption, VoteResults

NO_RESULTS_TEXT = "No results available"


class OptionResult(BaseModel):
    option_number: int
    option_text: str
    votes: int
    percentage: float
    is_winner: bool = False
    is_tie: bool = False


class ResultsView(BaseModel):
    rows: list[OptionResult]
    has_votes: bool
    headline: str
    total_voting_power: int = 0
    total_votes_cast: int = 0
    delegated_votes: int = 0
    participation_summary: str = ""


def _headline(winning_option: int | None, has_votes: bool) -> str:
    if not has_votes:
        return "No votes cast"
    if winning_option is not None:
        return f"Winner: Option {winning_option}"
    return "Tie"


def _participation_summary(delegated: int) -> str:
    if delegated <= 0:
        return "All votes were cast directly"
    noun = "vote" if delegated == 1 else "votes"
    return f"{delegated} {noun} came through delegation"


def build_results_view(results: VoteResults | None, options: list[ProposalOption]) -> ResultsView:
    if results is None or not options:
        return ResultsView(rows=[], has_votes=False, headline=NO_RESULTS_TEXT)

    metadata = results.metadata
    total = metadata.total_voting_power
    has_votes = total > 0
    winner = metadata.winning_option
    rows: list[OptionResult] = []
    for option in options:
        votes = results.votes_for(option.option_number)
        rows.append(
            OptionResult(
                option_number=option.option_number,
                option_text=option.option_text,
                votes=votes,
                percentage=(votes / total) * 100 if total > 0 else 0.0,
                is_winner=has_votes and option.option_number == winner,
                is_tie=has_votes and winner is None and votes > 0,
            )
        )
    rows.sort(key=lambda row: row.votes, reverse=True)

    delegated = max(0, total - metadata.total_votes_cast)
    return ResultsView(
        rows=rows,
        has_votes=has_votes,
        headline=_headline(winner, has_votes),
        total_voting_power=total,
        total_votes_cast=metadata.total_votes_cast,
        delegated_votes=delegated,
        participation_summary=_participation_summary(delegated),
    )


def results_for(proposal: Proposal) -> ResultsView | None:
    """Results view for a proposal, or None while the tally is still pending."""
    if proposal.vote_results is None:
        return None
    return build_results_view(proposal.vote_results, proposal.options)
