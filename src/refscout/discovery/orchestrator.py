"""Discovery orchestrator: verify suggested reviewers and discover new ones.

Track A checks each LLM-suggested reviewer against PubMed; Track B runs the
topic queries against every enabled index and turns senior authors into
candidates. Both tracks run concurrently, then the combined candidates go
through conflict-of-interest checks, optional LLM reasoning and ranking.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional, Sequence

from refscout.affiliation import check_institution_mismatch, extract_best_affiliation_multi_variant
from refscout.articles import (
    count_recent_publications,
    dedupe,
    filter_to_matching_author_multi_variant,
    select_article_set,
)
from refscout.coi import check_coauthorships_for_candidates, filter_proposal_authors, mark_institution_coi
from refscout.config import DiscoveryConfig
from refscout.discovery.progress import ProgressChannel
from refscout.errors import DiscoveryCancelled, InvalidRequestError, SearchError
from refscout.models import (
    AnalysisResult,
    Article,
    Candidate,
    CandidateSource,
    DiscoveryResult,
    DiscoveryStats,
    ProgressEvent,
    ProposalInfo,
    SearchIndex,
    SearchQuery,
    SuggestedReviewer,
    VerificationStatus,
)
from refscout.names import generate_name_variants, name_keys, same_person_any, strip_honorifics
from refscout.queries import build_author_query, build_disambiguated_author_query, build_topic_query
from refscout.ranking import rank_all_candidates
from refscout.scoring import calculate_expertise_match, check_expertise_mismatch
from refscout.search.base import BibliographicSearchClient

logger = logging.getLogger(__name__)

VERIFICATION_INDEX = SearchIndex.PUBMED


@dataclass
class _RunState:
    """Counters and warnings shared by the worker threads of one run."""

    stats: DiscoveryStats = field(default_factory=DiscoveryStats)
    warnings: list[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def warn(self, message: str) -> None:
        with self.lock:
            self.warnings.append(message)

    def count_failed_search(self, n: int = 1) -> None:
        with self.lock:
            self.stats.failed_searches += n


class DiscoveryOrchestrator:
    """Run one reviewer discovery over an analysis result.

    Args:
        clients: Search client per index. PubMed is required for verification;
            topic discovery uses whichever enabled indices have a client.
        reasoner: Optional ReasoningEnhancer for discovered candidates.
        config: Thresholds, pacing and feature flags.
        progress: Optional channel receiving ProgressEvents. It is closed when
            the run ends.
        current_year: Fixes the publication-date window (tests).
    """

    def __init__(
        self,
        clients: dict[SearchIndex, BibliographicSearchClient],
        reasoner=None,
        config: Optional[DiscoveryConfig] = None,
        progress: Optional[ProgressChannel] = None,
        current_year: Optional[int] = None,
    ):
        self.clients = dict(clients)
        self.reasoner = reasoner
        self.config = config or DiscoveryConfig()
        self.progress = progress
        self.current_year = current_year
        self._cancelled = threading.Event()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop the run at the next stage, candidate or query boundary."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise DiscoveryCancelled("Discovery run cancelled")

    def _emit(
        self,
        stage: str,
        status: str,
        message: str,
        data: Optional[dict] = None,
        track: Optional[str] = None,
        index: Optional[SearchIndex] = None,
    ) -> None:
        logger.debug("[%s/%s] %s", stage, status, message)
        if self.progress is not None:
            self.progress.publish(
                ProgressEvent(stage=stage, status=status, message=message, data=data or {}, track=track, index=index)
            )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, analysis: AnalysisResult) -> DiscoveryResult:
        """Execute both tracks, COI checks, reasoning and ranking.

        Raises:
            InvalidRequestError: If the analysis result is missing or empty.
            DiscoveryCancelled: If cancel() was called before the run finished.
        """
        try:
            return self._run(analysis)
        finally:
            if self.progress is not None:
                self.progress.close()

    def _run(self, analysis: AnalysisResult) -> DiscoveryResult:
        if analysis is None:
            raise InvalidRequestError("Analysis result is required")
        queries = analysis.search_queries()
        if not analysis.suggestions and not queries:
            raise InvalidRequestError("Analysis result has no reviewer suggestions or search queries")

        self._check_cancelled()
        state = _RunState()
        for issue in analysis.validation.issues:
            state.warn(f"Analysis: {issue}")
        proposal = analysis.proposal

        self._emit(
            "discovery",
            "starting",
            f"Verifying {len(analysis.suggestions)} suggestions and running {len(queries)} topic queries",
        )
        with ThreadPoolExecutor(max_workers=2) as pool:
            track_a = pool.submit(self._track_a, analysis.suggestions, state)
            track_b = pool.submit(self._track_b, queries, proposal, state)
            verified, unverified = track_a.result()
            discovered = track_b.result()

        self._check_cancelled()
        verified, unverified, discovered = self._fold_discoveries(verified, unverified, discovered)
        self._emit(
            "discovery",
            "verified",
            f"Verified {len(verified)} suggestions",
            data={"verified": len(verified), "unverified": len(unverified)},
        )
        self._emit(
            "discovery",
            "discovered",
            f"Discovered {len(discovered)} new candidates",
            data={"discovered": len(discovered)},
        )

        self._check_cancelled()
        verified, unverified, discovered = self._conflict_checks(proposal, verified, unverified, discovered, state)

        self._check_cancelled()
        discovered = self._add_reasoning(proposal, discovered, state)

        self._check_cancelled()
        stats = state.stats
        stats.suggestions_verified = len(verified)
        stats.suggestions_unverified = len(unverified)
        result = DiscoveryResult(
            verified=verified,
            unverified=unverified,
            discovered=discovered,
            stats=stats,
            warnings=list(state.warnings),
        )
        result.ranked = rank_all_candidates(result, proposal.keywords)
        self._emit(
            "complete",
            "complete",
            f"Ranked {len(result.ranked)} candidates",
            data={"ranked": len(result.ranked), "degraded": result.degraded},
        )
        logger.info(
            "Discovery complete: %d verified, %d unverified, %d discovered, %d warnings",
            len(verified),
            len(unverified),
            len(discovered),
            len(result.warnings),
        )
        return result

    # ------------------------------------------------------------------
    # Track A: verify suggestions
    # ------------------------------------------------------------------

    def _track_a(
        self, suggestions: Sequence[SuggestedReviewer], state: _RunState
    ) -> tuple[list[Candidate], list[Candidate]]:
        state.stats.suggestions_total = len(suggestions)
        if not suggestions:
            return [], []
        self._emit("verification", "starting", f"Verifying {len(suggestions)} suggested reviewers", track="A")

        with ThreadPoolExecutor(max_workers=max(1, self.config.max_concurrency)) as pool:
            futures = [pool.submit(self._verify_suggestion, s, state) for s in suggestions]
            candidates = [f.result() for f in futures]

        verified = [c for c in candidates if c.status == VerificationStatus.VERIFIED]
        unverified = [c for c in candidates if c.status == VerificationStatus.UNVERIFIED]
        self._emit(
            "verification",
            "complete",
            f"{len(verified)} of {len(candidates)} suggestions verified",
            data={"verified": len(verified), "unverified": len(unverified)},
            track="A",
        )
        return verified, unverified

    def _unverified(self, suggestion: SuggestedReviewer, reason: str, variants: list[str]) -> Candidate:
        return Candidate(
            name=strip_honorifics(suggestion.name) or suggestion.name,
            status=VerificationStatus.UNVERIFIED,
            source=CandidateSource.SUGGESTION,
            name_variants=variants,
            reasoning=suggestion.reasoning or None,
            seniority=suggestion.seniority,
            suggestion_source=suggestion.source,
            expertise_areas=list(suggestion.expertise_areas),
            suggested_institution=suggestion.institution,
            reason=reason,
        )

    def _verify_suggestion(self, suggestion: SuggestedReviewer, state: _RunState) -> Candidate:
        self._check_cancelled()
        cfg = self.config
        variants = generate_name_variants(suggestion.name)
        if not variants:
            return self._unverified(suggestion, "Name could not be parsed", variants)
        client = self.clients.get(VERIFICATION_INDEX)
        if client is None:
            return self._unverified(suggestion, "No PubMed client configured for verification", variants)

        plain: list[Article] = []
        disambiguated: list[Article] = []
        errors: list[SearchError] = []
        calls = 0
        for variant in variants[: cfg.max_query_variants]:
            self._check_cancelled()
            plain_query = build_author_query(variant, VERIFICATION_INDEX, cfg.years_lookback, self.current_year)
            disambiguated_query = build_disambiguated_author_query(
                variant, suggestion.expertise_areas, VERIFICATION_INDEX, cfg.years_lookback, self.current_year
            )
            searches = [(plain_query, cfg.simple_max_results, plain)]
            if disambiguated_query != plain_query:
                searches.append((disambiguated_query, cfg.disambiguated_max_results, disambiguated))
            for query, max_results, bucket in searches:
                calls += 1
                try:
                    bucket.extend(client.search_or_raise(query, max_results))
                except SearchError as e:
                    logger.warning("Verification search failed for %s: %s", suggestion.name, e.message)
                    errors.append(e)

        if errors:
            state.count_failed_search(len(errors))
        if errors and len(errors) == calls:
            state.warn(f"Verification search failed for {suggestion.name}: {errors[-1].message}")
            candidate = self._unverified(suggestion, f"Bibliographic search failed: {errors[-1].message}", variants)
            self._emit("verification", "unverified", f"{candidate.name}: {candidate.reason}", track="A")
            return candidate

        plain = dedupe(filter_to_matching_author_multi_variant(plain, variants))
        disambiguated = dedupe(filter_to_matching_author_multi_variant(disambiguated, variants))
        articles, selection = select_article_set(
            disambiguated, plain, suggestion.expertise_areas, cfg.min_publications
        )
        logger.debug(
            "%s: %d disambiguated, %d plain, selected %s (%d)",
            suggestion.name,
            len(disambiguated),
            len(plain),
            selection,
            len(articles),
        )

        candidate = self._unverified(suggestion, "", variants)
        candidate.articles = articles
        candidate.found_via = [VERIFICATION_INDEX] if articles else []
        candidate.affiliation = extract_best_affiliation_multi_variant(articles, variants)
        candidate.confidence = calculate_expertise_match(articles, suggestion.expertise_areas)
        candidate.recent_publication_count = count_recent_publications(
            articles, cfg.years_lookback, self.current_year
        )
        candidate.institution_mismatch = check_institution_mismatch(candidate.affiliation, suggestion.institution)
        if articles:
            candidate.expertise_mismatch = check_expertise_mismatch(articles, suggestion.expertise_areas).has_mismatch

        if len(articles) >= cfg.min_publications:
            candidate.status = VerificationStatus.VERIFIED
        elif not articles:
            candidate.reason = "No matching publications found"
        else:
            candidate.reason = f"Only {len(articles)} matching publications (minimum: {cfg.min_publications})"

        self._emit(
            "verification",
            candidate.status.value,
            f"{candidate.name}: {len(articles)} matching publications"
            + (f" ({candidate.reason})" if candidate.reason else ""),
            data={"name": candidate.name, "articles": len(articles), "confidence": candidate.confidence},
            track="A",
        )
        return candidate

    # ------------------------------------------------------------------
    # Track B: discover from topic queries
    # ------------------------------------------------------------------

    def _track_b(
        self, queries: Sequence[SearchQuery], proposal: ProposalInfo, state: _RunState
    ) -> list[Candidate]:
        enabled = set(self.config.enabled_indices())
        by_index: dict[SearchIndex, list[SearchQuery]] = {}
        for query in queries:
            if query.index.value not in enabled:
                continue
            if query.index not in self.clients:
                logger.info("No client for %s, skipping query %r", query.index.label, query.text)
                continue
            by_index.setdefault(query.index, []).append(query)

        for index in SearchIndex:
            state.stats.queries_per_index[index.value] = len(by_index.get(index, []))
        if not by_index:
            return []

        self._emit(
            "topic_search",
            "starting",
            f"Running {sum(len(q) for q in by_index.values())} topic queries on {len(by_index)} indices",
            track="B",
        )
        # One worker per index: queries to one index stay sequential
        with ThreadPoolExecutor(max_workers=len(by_index)) as pool:
            futures = {index: pool.submit(self._search_index, index, qs, state) for index, qs in by_index.items()}
            results = {index: future.result() for index, future in futures.items()}

        candidates: list[Candidate] = []
        before_merge = 0
        for index in SearchIndex:
            articles = results.get(index)
            if articles is None:
                continue
            authors_seen = set()
            for article in articles:
                author = article.senior_author
                if not author:
                    continue
                authors_seen.add(author.lower())
                self._merge_discovery(candidates, author, article, index)
            state.stats.candidates_per_index[index.value] = len(authors_seen)
            before_merge += len(authors_seen)

        state.stats.total_before_merge = before_merge
        state.stats.total_after_merge = len(candidates)

        expertise = proposal.expertise_terms
        kept = []
        for candidate in candidates:
            if candidate.article_count < self.config.discovered_min_publications:
                continue
            candidate.affiliation = extract_best_affiliation_multi_variant(candidate.articles, candidate.name_variants)
            candidate.confidence = calculate_expertise_match(candidate.articles, expertise)
            candidate.recent_publication_count = count_recent_publications(
                candidate.articles, self.config.years_lookback, self.current_year
            )
            kept.append(candidate)

        self._emit(
            "topic_search",
            "complete",
            f"Found {len(kept)} unique authors ({before_merge} before merging)",
            data={"before_merge": before_merge, "after_merge": len(candidates), "kept": len(kept)},
            track="B",
        )
        return kept

    def _search_index(
        self, index: SearchIndex, queries: Sequence[SearchQuery], state: _RunState
    ) -> list[Article]:
        client = self.clients[index]
        articles: list[Article] = []
        for query in queries:
            self._check_cancelled()
            built = build_topic_query(query.text, index, self.config.years_lookback, self.current_year)
            if not built:
                continue
            try:
                found = client.search_or_raise(built, self.config.discovery_max_results)
            except SearchError as e:
                state.count_failed_search()
                state.warn(f"{index.label} query {query.text!r} failed: {e.message}")
                self._emit("topic_search", "error", f"{index.label} query failed: {query.text}", track="B", index=index)
                continue
            articles.extend(found)
            self._emit(
                "topic_search",
                "query_complete",
                f"{index.label}: {len(found)} results for {query.text!r}",
                data={"query": query.text, "results": len(found)},
                track="B",
                index=index,
            )
        return dedupe(articles)

    @staticmethod
    def _merge_discovery(candidates: list[Candidate], author: str, article: Article, index: SearchIndex) -> None:
        """Attach an article to the matching discovered candidate, or start a new one."""
        for candidate in candidates:
            if same_person_any([candidate.name, *candidate.name_variants], [author]):
                if article.id not in {a.id for a in candidate.articles}:
                    candidate.articles.append(article)
                if author not in candidate.name_variants:
                    candidate.name_variants.append(author)
                if index not in candidate.found_via:
                    candidate.found_via.append(index)
                # Prefer a full given name over an initial for display
                if not name_keys(candidate.name) and name_keys(author):
                    candidate.name = author
                return
        candidates.append(
            Candidate(
                name=author,
                status=VerificationStatus.DISCOVERED,
                source=CandidateSource.TOPIC_SEARCH,
                name_variants=[author],
                articles=[article],
                found_via=[index],
            )
        )

    # ------------------------------------------------------------------
    # Post-processing
    # ------------------------------------------------------------------

    def _fold_discoveries(
        self,
        verified: list[Candidate],
        unverified: list[Candidate],
        discovered: list[Candidate],
    ) -> tuple[list[Candidate], list[Candidate], list[Candidate]]:
        """Fold topic-search hits on suggested reviewers back into Track A.

        A verified suggestion gains the extra articles. An unverified
        suggestion found again by topic search is promoted to discovered,
        keeping the suggestion's reasoning.
        """
        unverified = list(unverified)
        new = []
        for found in discovered:
            names = [found.name, *found.name_variants]
            match = next((c for c in verified if same_person_any([c.name, *c.name_variants], names)), None)
            if match is not None:
                match.articles = dedupe(match.articles + found.articles)
                match.found_via += [i for i in found.found_via if i not in match.found_via]
                continue

            match = next((c for c in unverified if same_person_any([c.name, *c.name_variants], names)), None)
            if match is not None:
                unverified.remove(match)
                match.status = VerificationStatus.DISCOVERED
                match.reason = ""
                match.articles = dedupe(match.articles + found.articles)
                match.found_via += [i for i in found.found_via if i not in match.found_via]
                match.affiliation = match.affiliation or found.affiliation
                match.confidence = max(match.confidence, found.confidence)
                match.recent_publication_count = max(match.recent_publication_count, found.recent_publication_count)
                logger.info("Suggestion %s confirmed by topic search", match.name)
                new.append(match)
                continue
            new.append(found)
        return verified, unverified, new

    def _conflict_checks(
        self,
        proposal: ProposalInfo,
        verified: list[Candidate],
        unverified: list[Candidate],
        discovered: list[Candidate],
        state: _RunState,
    ) -> tuple[list[Candidate], list[Candidate], list[Candidate]]:
        stats = state.stats
        if proposal.authors:
            verified, excluded_v = filter_proposal_authors(verified, proposal.authors)
            unverified, excluded_u = filter_proposal_authors(unverified, proposal.authors)
            discovered, excluded_d = filter_proposal_authors(discovered, proposal.authors)
            excluded = excluded_v + excluded_u + excluded_d
            stats.proposal_authors_excluded = len(excluded)
            if excluded:
                self._emit(
                    "author_filter",
                    "excluded",
                    f"Excluded {len(excluded)} candidate(s) who are proposal authors",
                    data={"excluded": [c.name for c in excluded]},
                )

        evidence_backed = verified + discovered
        if proposal.institution:
            mark_institution_coi(evidence_backed, proposal.institution)
            stats.institution_coi = sum(1 for c in evidence_backed if c.has_institution_coi)
            if stats.institution_coi:
                self._emit(
                    "coi_check",
                    "institution_coi",
                    f"Found {stats.institution_coi} candidate(s) from {proposal.institution}",
                )

        if proposal.authors and evidence_backed:
            self._emit(
                "coi_check",
                "starting",
                f"Checking coauthorship history with {len(proposal.authors)} proposal author(s)",
            )
            check_coauthorships_for_candidates(
                evidence_backed,
                proposal.authors,
                window_years=self.config.coi_window_years,
                current_year=self.current_year,
            )
            stats.coauthor_coi = sum(1 for c in evidence_backed if c.has_coauthor_coi)
            self._emit(
                "coi_check",
                "complete",
                f"Found {stats.coauthor_coi} candidate(s) with coauthorship history"
                if stats.coauthor_coi
                else "No coauthorship conflicts found",
            )
        return verified, unverified, discovered

    def _add_reasoning(
        self, proposal: ProposalInfo, discovered: list[Candidate], state: _RunState
    ) -> list[Candidate]:
        pending = [c for c in discovered if not c.reasoning]
        if not pending or not self.config.generate_reasoning:
            return discovered
        if self.reasoner is None:
            logger.info("No reasoner configured; %d discovered candidates left without reasoning", len(pending))
            return discovered

        self._emit("reasoning", "starting", f"Generating reasoning for {len(pending)} discovered candidates")

        def on_batch(number: int, total: int) -> None:
            self._check_cancelled()
            self._emit("reasoning", "processing", f"Processing batch {number}/{total}")

        self.reasoner.enhance(pending, proposal, on_batch=on_batch)
        for message in self.reasoner.failed_batches:
            state.warn(message)
        state.stats.failed_reasoning_batches = len(self.reasoner.failed_batches)
        self._emit("reasoning", "complete", f"Generated reasoning for {len(pending)} candidates")

        if not self.config.drop_irrelevant:
            return discovered
        kept = [c for c in discovered if c.is_relevant is not False]
        state.stats.irrelevant_filtered = len(discovered) - len(kept)
        if state.stats.irrelevant_filtered:
            self._emit(
                "filtering",
                "complete",
                f"Filtered out {state.stats.irrelevant_filtered} irrelevant candidates",
            )
        return kept
