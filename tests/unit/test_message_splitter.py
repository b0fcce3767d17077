"""Unit tests for reply chunking."""
import pytest

from ragbot.utils.message_splitter import first_chars, split_message


def assert_valid_chunks(text, chunks, max_length):
    assert "".join(chunks) == text
    for chunk in chunks:
        assert chunk
        assert len(chunk) <= max_length
        # Every chunk must be complete text on its own
        assert chunk.encode("utf-8").decode("utf-8") == chunk


@pytest.mark.unit
class TestSplitMessage:
    """Test split_message."""

    def test_empty_message_yields_no_chunks(self):
        assert split_message("", 1800) == []

    def test_short_message_is_single_chunk(self):
        assert split_message("hello", 1800) == ["hello"]

    def test_exact_length_is_single_chunk(self):
        text = "x" * 1800
        assert split_message(text, 1800) == [text]

    def test_long_reply_splits_into_fixed_sizes(self):
        text = "a" * 4000

        chunks = split_message(text)

        assert [len(c) for c in chunks] == [1800, 1800, 400]
        assert_valid_chunks(text, chunks, 1800)

    def test_emoji_straddling_boundary_stays_whole(self):
        # The emoji is 4 bytes in UTF-8 and sits right at position 1799
        text = "a" * 1799 + "\U0001F600" + "b" * 10

        chunks = split_message(text, 1800)

        assert chunks[0].endswith("\U0001F600")
        assert chunks[1] == "b" * 10
        assert_valid_chunks(text, chunks, 1800)

    def test_cjk_text(self):
        text = "漢字かな交じり文" * 50

        chunks = split_message(text, 7)

        assert_valid_chunks(text, chunks, 7)

    def test_combining_marks_and_mixed_scripts(self):
        text = "é" * 5 + "Ωμέγα" + "👍🏽" * 3 + "plain"

        for max_length in (1, 2, 3, 4, 5, 7, 11):
            assert_valid_chunks(text, split_message(text, max_length), max_length)

    def test_non_positive_max_length_is_rejected(self):
        with pytest.raises(ValueError):
            split_message("text", 0)
        with pytest.raises(ValueError):
            split_message("text", -5)


@pytest.mark.unit
class TestHelpers:
    def test_first_chars_counts_code_points(self):
        assert first_chars("漢字テキスト", 2) == "漢字"
        assert first_chars("short", 256) == "short"
