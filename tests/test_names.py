"""Tests for name normalization, variant generation and matching."""

from refscout.names import (
    generate_name_variants,
    name_keys,
    names_match,
    same_person,
    same_person_any,
    split_name,
    strip_honorifics,
)


class TestStripHonorifics:
    def test_titles_and_suffixes(self):
        assert strip_honorifics("Dr. Jane Smith") == "Jane Smith"
        assert strip_honorifics("Prof. John Doe, PhD") == "John Doe"
        assert strip_honorifics("Professor Ada Lovelace") == "Ada Lovelace"

    def test_markdown_and_whitespace(self):
        assert strip_honorifics("**Jane   Smith**") == "Jane Smith"

    def test_empty(self):
        assert strip_honorifics("") == ""
        assert strip_honorifics(None) == ""


class TestSplitName:
    def test_first_middle_last(self):
        parts = split_name("Jane Q. Smith")
        assert parts.first == "Jane"
        assert parts.middles == ("Q.",)
        assert parts.last == "Smith"

    def test_last_comma_first(self):
        parts = split_name("Smith, Jane")
        assert (parts.first, parts.last) == ("Jane", "Smith")

    def test_index_format(self):
        parts = split_name("Smith JQ")
        assert parts.first == "J"
        assert parts.middles == ("Q",)
        assert parts.last == "Smith"

    def test_uppercase_surname(self):
        parts = split_name("Jane LEE")
        assert (parts.first, parts.middles, parts.last) == ("Jane", (), "LEE")
        assert generate_name_variants("Jane LEE")[0] == "Jane LEE"
        assert names_match("Jane LEE", "Jane Lee")
        assert name_keys("KIM Smith") == {"kim smith"}

    def test_dotted_three_initials(self):
        parts = split_name("J.Q.R. Smith")
        assert parts.last == "Smith"
        assert name_keys("J.Q.R. Smith") == set()

    def test_particle_surname(self):
        parts = split_name("Ludwig van Beethoven")
        assert parts.first == "Ludwig"
        assert parts.last == "van Beethoven"

    def test_single_word(self):
        parts = split_name("Madonna")
        assert parts.first == ""
        assert parts.last == "Madonna"


class TestGenerateNameVariants:
    def test_includes_plain_form(self):
        variants = generate_name_variants("Dr. Jane Q. Smith")
        assert "Jane Smith" in variants

    def test_order(self):
        assert generate_name_variants("Dr. Jane Q. Smith") == [
            "Jane Smith",
            "Jane Q. Smith",
            "J. Smith",
            "J Smith",
            "Smith JQ",
        ]

    def test_nickname_expansion(self):
        variants = generate_name_variants("Bob Jones")
        assert variants[:2] == ["Bob Jones", "Robert Jones"]
        assert "Jones B" in variants

    def test_no_duplicates(self):
        variants = generate_name_variants("J. Smith")
        assert len(variants) == len({v.lower() for v in variants})

    def test_single_word_and_empty(self):
        assert generate_name_variants("Madonna") == ["Madonna"]
        assert generate_name_variants("") == []


class TestNamesMatch:
    def test_initial_matches_full_name(self):
        assert names_match("Jane Smith", "J. Smith")
        assert names_match("Smith JQ", "Jane Q. Smith")

    def test_different_first_names(self):
        assert not names_match("Jane Smith", "John Smith")

    def test_different_surnames(self):
        assert not names_match("Jane Smith", "Jane Smyth")

    def test_nickname(self):
        assert names_match("Bob Smith", "Robert Smith")

    def test_prefix(self):
        assert names_match("Chris Smith", "Christopher Smith")

    def test_conflicting_middle_initials(self):
        assert not names_match("Jane Q. Smith", "Jane R. Smith")

    def test_case_insensitive(self):
        assert names_match("JANE SMITH", "jane smith")


class TestSamePerson:
    def test_full_forms_merge(self):
        assert same_person("Jane Smith", "Jane Q. Smith")
        assert same_person("Bob Jones", "Robert Jones")

    def test_initial_falls_back_to_names_match(self):
        assert same_person("Jane Smith", "J. Smith")

    def test_distinct_people(self):
        assert not same_person("Jane Smith", "John Smith")

    def test_initial_only_names_have_no_keys(self):
        assert name_keys("J. Smith") == set()
        assert name_keys("Jane Smith") == {"jane smith"}


class TestSamePersonAny:
    def test_alternate_rendering_merges(self):
        assert not same_person("María García", "Maria Garcia-Lopez")
        assert same_person_any(["María García", "Maria Garcia-Lopez"], ["Maria Garcia-Lopez"])

    def test_initial_alternates_ignored(self):
        assert not same_person_any(["Jane Smith", "J. Smith"], ["John Smith"])

    def test_initial_display_name_still_compared(self):
        assert same_person_any(["J. Smith"], ["Jane Smith", "Jane Q. Smith"])

    def test_empty(self):
        assert not same_person_any([], ["Jane Smith"])
