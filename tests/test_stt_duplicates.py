"""Tests for near-duplicate phrase suppression."""

import pytest

from callscribe.stt.duplicates import (
    DuplicateSuppressor,
    jaccard_similarity,
    split_sentences,
    word_set,
)


class TestHelpers:
    """Tests for text helpers."""

    def test_split_sentences(self):
        assert split_sentences("Hello there. How are you? Fine!") == [
            "Hello there",
            "How are you",
            "Fine",
        ]

    def test_split_without_punctuation(self):
        assert split_sentences("just one phrase") == ["just one phrase"]

    def test_split_blank(self):
        assert split_sentences("  ... ") == []

    def test_word_set_is_case_insensitive(self):
        assert word_set("The the THE cat") == frozenset({"the", "cat"})

    def test_jaccard(self):
        assert jaccard_similarity("the patient reports pain", "the patient reports mild pain") == pytest.approx(0.8)
        assert jaccard_similarity("a b", "c d") == 0.0
        assert jaccard_similarity("", "") == 0.0


class TestDuplicateSuppressor:
    """Tests for DuplicateSuppressor."""

    def test_first_text_passes(self):
        suppressor = DuplicateSuppressor()
        result = suppressor.filter("The patient reports pain.")
        assert result.cleaned_text == "The patient reports pain"
        assert result.had_duplicates is False

    def test_similar_sentence_is_dropped(self):
        suppressor = DuplicateSuppressor()
        suppressor.filter("the patient reports pain")

        result = suppressor.filter("the patient reports mild pain")

        assert result.cleaned_text == ""
        assert result.had_duplicates is True

    def test_dissimilar_sentence_is_kept(self):
        suppressor = DuplicateSuppressor()
        suppressor.filter("the patient reports pain")

        result = suppressor.filter("schedule a follow up next week")

        assert result.cleaned_text == "schedule a follow up next week"
        assert result.had_duplicates is False

    def test_exact_threshold_is_kept(self):
        # 3 shared words out of 4 is exactly 0.75, which does not exceed it
        suppressor = DuplicateSuppressor(threshold=0.75)
        suppressor.filter("one two three")

        result = suppressor.filter("one two three four")

        assert result.cleaned_text == "one two three four"

    def test_filter_is_idempotent_on_repeat(self):
        suppressor = DuplicateSuppressor()
        first = suppressor.filter("Good morning everyone. Let's begin.")

        second = suppressor.filter("Good morning everyone. Let's begin.")

        assert first.cleaned_text == "Good morning everyone Let's begin"
        assert second.cleaned_text == ""
        assert second.had_duplicates is True

    def test_mixed_units_keep_order(self):
        suppressor = DuplicateSuppressor()
        suppressor.filter("we agreed on the budget")

        result = suppressor.filter("First item. We agreed on the budget. Last item.")

        assert result.cleaned_text == "First item Last item"
        assert result.had_duplicates is True

    def test_duplicates_not_added_to_history(self):
        suppressor = DuplicateSuppressor()
        suppressor.filter("hello world")
        suppressor.filter("hello world")
        assert suppressor.history == ["hello world"]

    def test_history_is_bounded(self):
        suppressor = DuplicateSuppressor(history_size=2)
        suppressor.filter("alpha one. beta two. gamma three")

        assert suppressor.history == ["beta two", "gamma three"]
        # Evicted unit is no longer suppressed
        assert suppressor.filter("alpha one").cleaned_text == "alpha one"

    def test_reset(self):
        suppressor = DuplicateSuppressor()
        suppressor.filter("hello world")
        suppressor.reset()
        assert suppressor.history == []
        assert suppressor.filter("hello world").cleaned_text == "hello world"
