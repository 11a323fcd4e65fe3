"""Tests for title normalization."""

from __future__ import annotations

from mangamatch.core.matching.normalizer import (
    create_normalized_titles,
    extract_match_tokens,
    extract_meaningful_words,
    is_difference_only_articles,
    is_primary_token,
    normalize,
    normalize_for_matching,
    normalize_string,
    normalize_token,
    process_title,
    replace_special_chars,
    strip_ignorable,
)
from mangamatch.core.models import MangaTitles, TitleRecord


class TestNormalize:
    """Test the canonical normalize() pipeline."""

    def test_empty_input(self):
        """Test that empty input gives empty output."""
        assert normalize("") == ""
        assert normalize(None) == ""
        assert normalize("   ") == ""

    def test_repeatable(self):
        """Test that normalization is a pure function."""
        title = "Kaguya-sama wa Kokurasetai: Tensai-tachi no Ren'ai Zunousen"
        assert normalize(title) == normalize(title)

    def test_whitespace_and_hyphens_removed(self):
        """Test that spacing and hyphenation differences disappear."""
        assert normalize("Spider-Man") == "spiderman"
        assert normalize("One  Piece") == normalize("OnePiece") == "onepiece"

    def test_brackets_stripped(self):
        """Test that tag prefixes and parenthetical suffixes are removed."""
        assert normalize("[Scanlator] One Piece (Digital)") == "onepiece"

    def test_noise_suffixes_stripped(self):
        """Test that low-signal suffixes are removed."""
        assert normalize("Naruto Manga") == "naruto"
        assert normalize("Berserk Vol. 3") == "berserk"
        assert normalize("Berserk Chapter 12") == "berserk"

    def test_particles_expanded(self):
        """Test that Japanese particles map to their English counterparts."""
        assert normalize("Shingeki no Kyojin") == "shingekiofkyojin"

    def test_re_prefix(self):
        """Test that Re: collapses to the same form as Re."""
        assert normalize("Re:Zero") == normalize("Rezero") == "rezero"

    def test_diacritics_removed(self):
        """Test that combining marks are stripped."""
        assert normalize("Café Pokémon") == "cafepokemon"

    def test_full_width_folded(self):
        """Test that full-width letters fold to ASCII."""
        assert normalize("ＯＮＥ ＰＩＥＣＥ") == "onepiece"

    def test_native_script_kept(self):
        """Test that non-Latin letters survive normalization."""
        assert normalize("進撃の巨人") == "進撃の巨人"

    def test_abbreviations_expanded(self):
        """Test that whole-word abbreviations expand."""
        assert normalize("Tom vs Jerry") == "tomversusjerry"


class TestStripIgnorable:
    """Test strip_ignorable()."""

    def test_patterns_apply_once(self):
        """Test that each pattern is applied once, not recursively."""
        assert strip_ignorable("[A] [B] Title") == "[B] Title"

    def test_one_shot_suffix(self):
        """Test that one-shot markers are removed."""
        assert strip_ignorable("Some Story Oneshot") == "Some Story"
        assert strip_ignorable("Some Story One-Shot") == "Some Story"


class TestMeaningfulWords:
    """Test extract_meaningful_words() and extract_match_tokens()."""

    def test_stop_words_dropped(self):
        """Test that stop words and particles are dropped."""
        assert extract_meaningful_words("The Rising of the Shield Hero") == ["rising", "shield", "hero"]
        assert extract_meaningful_words("Shingeki no Kyojin") == ["shingeki", "kyojin"]

    def test_punctuation_splits_words(self):
        """Test that punctuation separates words."""
        assert extract_meaningful_words("Spy x Family: Code White") == ["spy", "family", "code", "white"]

    def test_numbers(self):
        """Test that single digits are kept only on request."""
        assert extract_meaningful_words("Mob Psycho 100") == ["mob", "psycho", "100"]
        assert extract_meaningful_words("Part 2") == ["part"]
        assert extract_meaningful_words("Part 2", keep_numbers=True) == ["part", "2"]

    def test_empty(self):
        """Test empty input."""
        assert extract_meaningful_words("") == []
        assert extract_meaningful_words(None) == []

    def test_match_tokens_normalize_numbers(self):
        """Test that match tokens fold number spellings."""
        assert extract_match_tokens("Overlord II") == ["overlord", "2"]
        assert extract_match_tokens("Season Two") == ["season", "2"]


class TestNormalizeToken:
    """Test normalize_token()."""

    def test_number_forms(self):
        """Test that number spellings map to the same digit string."""
        for token in ("S2", "season2", "two", "02", "II", "pt.2"):
            assert normalize_token(token) == "2", token

    def test_roman_numerals(self):
        """Test Roman numeral conversion."""
        assert normalize_token("iv") == "4"
        assert normalize_token("XII") == "12"

    def test_words_unchanged(self):
        """Test that ordinary words are only lowercased."""
        assert normalize_token("Hero") == "hero"
        assert normalize_token("") == ""

    def test_primary_tokens(self):
        """Test primary token classification."""
        assert is_primary_token("titan")
        assert not is_primary_token("season")
        assert not is_primary_token("2")


class TestLightPasses:
    """Test the lighter normalization helpers used by the pipeline."""

    def test_normalize_string(self):
        """Test punctuation replacement and case folding."""
        assert normalize_string("Attack on Titan!") == "attack on titan"
        assert normalize_string("Dr. STONE", case_sensitive=True) == "Dr STONE"
        assert normalize_string(None) == ""

    def test_normalize_for_matching(self):
        """Test punctuation removal that keeps word boundaries."""
        assert normalize_for_matching("Re:Zero") == "rezero"
        assert normalize_for_matching("Spider-Man: Homecoming") == "spiderman homecoming"
        assert normalize_for_matching("  One   Piece ") == "one piece"

    def test_process_title(self):
        """Test removal of inner parentheticals and separators."""
        assert process_title("Title (2020) - Part_2") == "Title Part 2"
        assert process_title("Kaguya’s Love") == "Kaguya's Love"

    def test_replace_special_chars(self):
        """Test Cyrillic look-alike transliteration."""
        assert replace_special_chars("Кот") == "Kot"
        assert replace_special_chars("plain") == "plain"

    def test_article_only_difference(self):
        """Test article-only difference detection."""
        assert is_difference_only_articles("The Promised Neverland", "Promised Neverland")
        assert not is_difference_only_articles("Promised Neverland", "Promised Neverland")
        assert not is_difference_only_articles("The Promised Land", "Promised Neverland")


class TestCreateNormalizedTitles:
    """Test create_normalized_titles()."""

    def test_order_and_sources(self):
        """Test that titles come out english, romaji, native, then synonyms."""
        record = TitleRecord(
            id=1,
            titles=MangaTitles(romaji="Shingeki no Kyojin", english="Attack on Titan", native="進撃の巨人"),
            synonyms=("AoT", "", "Attack-on-Titan"),
        )

        titles = create_normalized_titles(record)

        assert [t.source for t in titles] == ["english", "romaji", "native", "synonym_0", "synonym_2"]
        assert titles[0].text == "attack on titan"
        assert titles[4].original == "Attack on Titan"
        assert titles[4].text == "attack on titan"

    def test_missing_fields_skipped(self):
        """Test that absent title fields produce nothing."""
        record = TitleRecord(titles=MangaTitles(romaji="Naruto"))
        titles = create_normalized_titles(record)
        assert len(titles) == 1
        assert titles[0].source == "romaji"
