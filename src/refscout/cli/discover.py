"""Discovery commands: discover (from a saved analysis) and find (end to end)."""

import json
import sys
from pathlib import Path

from refscout.cli._shared import (
    add_discovery_arguments,
    add_llm_arguments,
    build_llm,
    config_overrides,
    print_result,
    run_with_progress,
    write_json,
)


def register(subparsers):
    """Register discovery commands."""
    _register_discover(subparsers)
    _register_find(subparsers)


def _register_discover(subparsers):
    p = subparsers.add_parser(
        "discover", help="Verify suggestions and discover reviewers from a saved analysis"
    )
    p.add_argument("analysis", type=str, help="Analysis JSON written by `refscout analyze`")
    add_llm_arguments(p)
    add_discovery_arguments(p)
    p.set_defaults(func=cmd_discover)


def _register_find(subparsers):
    p = subparsers.add_parser("find", help="Analyze a proposal and discover reviewers in one step")
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
    add_discovery_arguments(p)
    p.set_defaults(func=cmd_find)


# --- Command handlers ---


def _discover(args, analysis):
    from refscout.config import load_discovery_config
    from refscout.discovery import DiscoveryOrchestrator, ProgressChannel
    from refscout.errors import InvalidRequestError
    from refscout.reasoning import ReasoningEnhancer
    from refscout.search import create_clients

    config = load_discovery_config(config_overrides(args))
    reasoner = None
    if config.generate_reasoning:
        reasoner = ReasoningEnhancer(
            build_llm(args),
            batch_size=config.reasoning_batch_size,
            batch_pause=config.reasoning_batch_pause,
        )

    channel = ProgressChannel()
    orchestrator = DiscoveryOrchestrator(
        create_clients(config), reasoner=reasoner, config=config, progress=channel
    )
    try:
        result = run_with_progress(orchestrator, channel, analysis, quiet=args.quiet)
    except InvalidRequestError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print_result(result, top_k=args.top_k)
    if args.output:
        write_json(args.output, {"analysis": analysis.to_dict(), "discovery": result.to_dict()})
    return result


def cmd_discover(args):
    """Run discovery from a saved analysis JSON."""
    from refscout.models import AnalysisResult

    path = Path(args.analysis)
    if not path.exists():
        print(f"Error: Analysis file not found: {args.analysis}")
        print("Run 'refscout analyze <proposal>' first.")
        sys.exit(1)
    with open(path) as f:
        analysis = AnalysisResult.from_dict(json.load(f))
    print(
        f"Loaded analysis: {len(analysis.suggestions)} suggestions, "
        f"{len(analysis.search_queries())} queries"
    )
    _discover(args, analysis)


def cmd_find(args):
    """Analyze a proposal, then verify and discover reviewers."""
    from refscout.cli.analyze import read_proposal, run_analysis

    text = read_proposal(args.proposal)
    print(f"Analyzing {args.proposal} ({len(text)} chars)...")
    analysis = run_analysis(args, text)
    _discover(args, analysis)
