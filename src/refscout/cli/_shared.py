"""Helpers shared by CLI commands."""

import json
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from tqdm import tqdm

from refscout.config import DEFAULT_LLM_MODEL
from refscout.errors import ConfigurationError, DiscoveryCancelled


def add_llm_arguments(p):
    p.add_argument(
        "--api-key", type=str, help="Anthropic API key (or use ANTHROPIC_API_KEY env var)"
    )
    p.add_argument(
        "--model",
        type=str,
        default=DEFAULT_LLM_MODEL,
        help=f"Model to use (default: {DEFAULT_LLM_MODEL})",
    )


def add_discovery_arguments(p):
    p.add_argument(
        "--min-publications",
        type=int,
        default=None,
        help="Matched publications needed to verify a suggestion (default: 3)",
    )
    p.add_argument(
        "--years", type=int, default=None, help="Publication lookback in years (default: 5)"
    )
    p.add_argument("--no-pubmed", action="store_true", help="Skip PubMed topic search")
    p.add_argument("--no-arxiv", action="store_true", help="Skip arXiv topic search")
    p.add_argument("--no-biorxiv", action="store_true", help="Skip bioRxiv topic search")
    p.add_argument(
        "--no-reasoning",
        action="store_true",
        help="Skip LLM reasoning for discovered candidates",
    )
    p.add_argument(
        "--keep-irrelevant",
        action="store_true",
        help="Keep discovered candidates the LLM judged not relevant",
    )
    p.add_argument(
        "--top-k", type=int, default=15, help="Number of ranked candidates to print (default: 15)"
    )
    p.add_argument("--output", "-o", type=str, help="Write the full result as JSON")
    p.add_argument("--quiet", "-q", action="store_true", help="Hide the progress bar")


def config_overrides(args) -> dict:
    """Translate discovery flags into DiscoveryConfig overrides."""
    overrides = {}
    if args.min_publications is not None:
        overrides["min_publications"] = args.min_publications
    if args.years is not None:
        overrides["years_lookback"] = args.years
    if args.no_pubmed:
        overrides["search_pubmed"] = False
    if args.no_arxiv:
        overrides["search_arxiv"] = False
    if args.no_biorxiv:
        overrides["search_biorxiv"] = False
    if args.no_reasoning:
        overrides["generate_reasoning"] = False
    if args.keep_irrelevant:
        overrides["drop_irrelevant"] = False
    return overrides


def build_llm(args):
    from refscout.llm import LLMClient

    try:
        return LLMClient(api_key=args.api_key, model=args.model)
    except ConfigurationError as e:
        print(f"Error: {e}")
        sys.exit(1)


def write_json(path: str, data: dict) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    print(f"Saved to {path}")


def run_with_progress(orchestrator, channel, analysis, quiet: bool = False):
    """Run discovery in a worker thread while the main thread shows progress.

    Ctrl-C cancels the run at its next checkpoint.
    """
    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(orchestrator.run, analysis)
        try:
            with tqdm(desc="Discovering reviewers", unit=" step", disable=quiet) as bar:
                for event in channel.events():
                    bar.update(1)
                    bar.set_postfix_str(event.message[:60])
                    if event.status in ("error", "excluded", "institution_coi"):
                        tqdm.write(f"  {event.message}")
        except KeyboardInterrupt:
            orchestrator.cancel()
            print("\nCancelling...")
        try:
            return future.result()
        except DiscoveryCancelled:
            print("Discovery cancelled.")
            sys.exit(130)


def print_result(result, top_k: int = 15) -> None:
    stats = result.stats
    print("\nDiscovery complete:")
    print(f"  Suggestions verified:   {stats.suggestions_verified}/{stats.suggestions_total}")
    print(f"  Discovered candidates:  {len(result.discovered)}")
    print(f"  Proposal authors out:   {stats.proposal_authors_excluded}")
    print(f"  Coauthor conflicts:     {stats.coauthor_coi}")
    print(f"  Institution conflicts:  {stats.institution_coi}")
    print(f"  Failed searches:        {stats.failed_searches}")

    if result.warnings:
        print("\nWarnings:")
        for warning in result.warnings:
            print(f"  - {warning}")

    print(f"\nTop {min(top_k, len(result.ranked))} candidates:\n")
    for i, candidate in enumerate(result.ranked[:top_k], 1):
        flags = []
        if candidate.has_coauthor_coi:
            flags.append("COAUTHOR COI")
        if candidate.has_institution_coi:
            flags.append("SAME INSTITUTION")
        flag_text = f"  [{', '.join(flags)}]" if flags else ""
        print(
            f"{i}. [{candidate.composite_score:.2f}] {candidate.name} "
            f"({candidate.status.value}, {candidate.article_count} papers){flag_text}"
        )
        if candidate.affiliation:
            print(f"   {candidate.affiliation[:100]}")
        if candidate.reasoning:
            print(f"   {candidate.reasoning[:200]}")
        if candidate.reason:
            print(f"   Not verified: {candidate.reason}")
        print()
