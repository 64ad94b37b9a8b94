"""Stage-1 command: analyze a proposal into suggestions and search queries."""

import sys
from pathlib import Path

from refscout.cli._shared import add_llm_arguments, build_llm, write_json


def register(subparsers):
    """Register the analyze command."""
    p = subparsers.add_parser(
        "analyze", help="Extract metadata, reviewer suggestions and search queries from a proposal"
    )
    p.add_argument("proposal", type=str, help="Path to the proposal text file")
    add_llm_arguments(p)
    p.add_argument("--notes", type=str, default="", help="Additional guidance for the analysis")
    p.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="NAME",
        help="Name that must not be suggested (repeatable)",
    )
    p.add_argument(
        "--reviewers", type=int, default=12, help="Number of reviewers to suggest (default: 12)"
    )
    p.add_argument(
        "--output",
        "-o",
        type=str,
        default="analysis.json",
        help="Where to write the analysis JSON (default: analysis.json)",
    )
    p.set_defaults(func=cmd_analyze)


def read_proposal(path: str) -> str:
    proposal_path = Path(path)
    if not proposal_path.exists():
        print(f"Error: Proposal file not found: {path}")
        sys.exit(1)
    return proposal_path.read_text(encoding="utf-8", errors="replace")


def run_analysis(args, text: str):
    from refscout.analysis import ProposalAnalyzer
    from refscout.errors import InvalidRequestError

    analyzer = ProposalAnalyzer(build_llm(args), reviewer_count=args.reviewers)
    try:
        result = analyzer.analyze(text, notes=args.notes, excluded_names=args.exclude)
    except InvalidRequestError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Title: {result.proposal.title or '(none)'}")
    print(f"Suggested reviewers: {len(result.suggestions)}")
    for index, queries in result.queries.items():
        print(f"{index.label} queries: {len(queries)}")
    for issue in result.validation.issues:
        print(f"  Warning: {issue}")
    return result


def cmd_analyze(args):
    """Analyze a proposal and save the result for `refscout discover`."""
    text = read_proposal(args.proposal)
    print(f"Analyzing {args.proposal} ({len(text)} chars)...")
    result = run_analysis(args, text)
    write_json(args.output, result.to_dict())
