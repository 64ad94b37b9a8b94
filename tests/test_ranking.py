"""Tests for candidate merging and ranking."""

from refscout.models import DiscoveryResult, SearchIndex, VerificationStatus
from refscout.ranking import (
    KEYWORD_BOOST,
    VERIFIED_BOOST,
    composite_score,
    merge_candidates,
    rank_all_candidates,
)


class TestMergeCandidates:
    def test_best_status_wins(self, candidate_factory, article_factory):
        discovered = candidate_factory(
            "Jane Q. Smith",
            status=VerificationStatus.DISCOVERED,
            articles=[article_factory("1"), article_factory("2")],
            found_via=[SearchIndex.ARXIV],
            reasoning="Works on phage models.",
        )
        verified = candidate_factory("Jane Smith", articles=[article_factory("2"), article_factory("3")])
        merged = merge_candidates([discovered, verified])

        assert len(merged) == 1
        person = merged[0]
        assert person.status == VerificationStatus.VERIFIED
        assert sorted(a.id for a in person.articles) == ["1", "2", "3"]
        assert SearchIndex.ARXIV in person.found_via
        assert person.reasoning == "Works on phage models."

    def test_distinct_people_kept(self, candidate_factory):
        merged = merge_candidates([candidate_factory("Jane Smith"), candidate_factory("John Smith")])
        assert len(merged) == 2

    def test_merges_on_name_variants(self, candidate_factory, article_factory):
        discovered = candidate_factory(
            "María García",
            status=VerificationStatus.DISCOVERED,
            articles=[article_factory("1")],
            name_variants=["María García", "Maria Garcia-Lopez"],
        )
        verified = candidate_factory("Maria Garcia-Lopez", articles=[article_factory("2")])
        merged = merge_candidates([discovered, verified])

        assert len(merged) == 1
        assert merged[0].status == VerificationStatus.VERIFIED
        assert sorted(a.id for a in merged[0].articles) == ["1", "2"]


class TestCompositeScore:
    def test_verified_boost(self, candidate_factory):
        candidate = candidate_factory("Jane Smith", confidence=0.5)
        assert composite_score(candidate, []) == 0.5 + VERIFIED_BOOST

    def test_keyword_boost(self, candidate_factory, article_factory):
        candidate = candidate_factory(
            "Bo Li",
            status=VerificationStatus.DISCOVERED,
            confidence=0.4,
            articles=[article_factory("1", title="Bacteriophage predation in the marine microbiome")],
        )
        assert composite_score(candidate, ["bacteriophage", "marine microbiome"]) == round(0.4 + KEYWORD_BOOST, 4)


class TestRankAllCandidates:
    def test_unverified_always_last(self, candidate_factory, article_factory):
        result = DiscoveryResult(
            verified=[candidate_factory("Jane Smith", confidence=0.1, articles=[article_factory("1")])],
            discovered=[
                candidate_factory(
                    "Bo Li",
                    status=VerificationStatus.DISCOVERED,
                    confidence=0.0,
                    articles=[article_factory("2")],
                )
            ],
            unverified=[
                candidate_factory("Ann Lee", status=VerificationStatus.UNVERIFIED, confidence=1.0, reason="x")
            ],
        )
        ranked = rank_all_candidates(result)
        assert ranked[-1].name == "Ann Lee"
        assert {c.name for c in ranked[:2]} == {"Jane Smith", "Bo Li"}

    def test_sorted_by_composite(self, candidate_factory, article_factory):
        result = DiscoveryResult(
            discovered=[
                candidate_factory(
                    "Bo Li", status=VerificationStatus.DISCOVERED, confidence=0.3, articles=[article_factory("1")]
                ),
                candidate_factory(
                    "Mia Wong", status=VerificationStatus.DISCOVERED, confidence=0.9, articles=[article_factory("2")]
                ),
            ],
        )
        ranked = rank_all_candidates(result)
        assert [c.name for c in ranked] == ["Mia Wong", "Bo Li"]
        assert ranked[0].composite_score == 0.9

    def test_article_count_breaks_ties(self, candidate_factory, article_factory):
        result = DiscoveryResult(
            discovered=[
                candidate_factory(
                    "Bo Li", status=VerificationStatus.DISCOVERED, confidence=0.5, articles=[article_factory("1")]
                ),
                candidate_factory(
                    "Mia Wong",
                    status=VerificationStatus.DISCOVERED,
                    confidence=0.5,
                    articles=[article_factory("2"), article_factory("3")],
                ),
            ],
        )
        assert [c.name for c in rank_all_candidates(result)] == ["Mia Wong", "Bo Li"]
