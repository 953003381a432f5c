"""
Tests for banned-word masking.
"""

import pytest

from chatrelay.filtering import DEFAULT_BANNED_WORDS, ContentFilter, filter_message


class TestContentFilter:
    """Tests for ContentFilter."""

    def test_masks_banned_word_with_same_length(self):
        """A banned word becomes '*' of the same length."""
        f = ContentFilter()
        assert f.filter(b"hello badword1 world") == b"hello ******** world"

    @pytest.mark.parametrize("word", [b"BADWORD2", b"BadWord2", b"bAdWoRd2"])
    def test_case_insensitive(self, word):
        """Any letter casing is masked."""
        f = ContentFilter()
        assert f.filter(b"x " + word + b" y") == b"x ******** y"

    def test_every_occurrence_masked(self):
        """Repeated and adjacent occurrences are all masked."""
        f = ContentFilter()
        assert f.filter(b"badword1badword1 and BADWORD1") == b"**************** and ********"

    def test_embedded_in_larger_word(self):
        """Substring matches are masked too; surrounding text is untouched."""
        f = ContentFilter()
        assert f.filter(b"prebadword3post") == b"pre********post"

    def test_unrelated_text_unchanged(self):
        """Messages without banned words come back byte-identical."""
        f = ContentFilter()
        message = b"Nothing To See Here, just \xff\xfe bytes"
        assert f.filter(message) == message

    def test_preserves_length(self):
        """Output length always equals input length."""
        f = ContentFilter()
        message = b"badword1 BADWORD2 badword3 tail"
        assert len(f.filter(message)) == len(message)

    def test_idempotent(self):
        """Filtering twice is the same as filtering once."""
        f = ContentFilter()
        once = f.filter(b"a badword1 b BadWord3 c")
        assert f.filter(once) == once

    def test_str_input(self):
        """str messages are filtered and returned as str."""
        f = ContentFilter()
        assert f.filter("Hello BADWORD1!") == "Hello ********!"

    def test_empty_message(self):
        """Empty input is fine."""
        assert ContentFilter().filter(b"") == b""

    def test_custom_word_list(self):
        """Only the configured words are masked."""
        f = ContentFilter(["spam"])
        assert f.filter(b"spam and badword1") == b"**** and badword1"

    def test_overlapping_words_masked_in_order(self):
        """Words are applied in list order; an earlier mask can break a later match."""
        assert ContentFilter(["abc", "cde"]).filter(b"abcde") == b"***de"
        assert ContentFilter(["cde", "abc"]).filter(b"abcde") == b"ab***"

    def test_callable(self):
        """A ContentFilter can be called directly."""
        f = ContentFilter()
        assert f(b"badword2") == b"********"

    @pytest.mark.parametrize("bad", ["", "bad*word", "éclair"])
    def test_rejects_invalid_words(self, bad):
        """Empty words, words containing the mask character, and non-ASCII words are refused."""
        with pytest.raises(ValueError):
            ContentFilter([bad])

    def test_str_and_bytes_fold_case_alike(self):
        """Case folding is ASCII-only for str as for bytes."""
        content_filter = ContentFilter(["kit"])
        text = "\u212ait kit KIT"  # KELVIN SIGN folds to "k" only under Unicode rules

        assert content_filter.filter(text) == "\u212ait *** ***"
        assert content_filter.filter(text.encode("utf-8")) == "\u212ait *** ***".encode("utf-8")


def test_filter_message_uses_default_words():
    """Module-level helper masks the default list."""
    assert DEFAULT_BANNED_WORDS == ("badword1", "badword2", "badword3")
    assert filter_message(b"badword3!") == b"********!"
