"""
Unit tests for overlap resolution and paragraph annotation.
"""
import unittest
import sys
from pathlib import Path

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from lexspan.matcher import annotate_paragraph, annotate_passage, filter_by_sentiment
from lexspan.overlap import build_segments, resolve_overlaps, select_spans, spans_overlap
from lexspan.patterns import LexicalPattern
from lexspan.span_finder import MatchSpan, find_spans


def _patterns(*texts):
    return [LexicalPattern(t, pattern_id=f"p{i}", order=i) for i, t in enumerate(texts)]


class TestOverlapResolver(unittest.TestCase):
    """Test cases for greedy longest-first selection."""

    def test_spans_overlap(self):
        self.assertTrue(spans_overlap(0, 5, 4, 8))
        self.assertTrue(spans_overlap(0, 10, 2, 3))
        self.assertFalse(spans_overlap(0, 5, 5, 8))

    def test_longest_match_first(self):
        """Test that 'running fast' wins over 'running' inside it."""
        text = "he was running fast"
        patterns = _patterns("running", "running fast", "run")
        candidates = [s for p in patterns for s in find_spans(text, p)]
        spans = select_spans(candidates)
        self.assertEqual(len(spans), 1)
        self.assertEqual(spans[0].text, "running fast")

    def test_longer_candidate_is_not_trimmed(self):
        """Test that a losing overlapping candidate is dropped entirely."""
        short, long_ = _patterns("ab", "abc d")
        candidates = [
            MatchSpan(0, 2, "ab", short),
            MatchSpan(1, 6, "bc de", long_),
        ]
        spans = select_spans(candidates)
        self.assertEqual([(s.start, s.end) for s in spans], [(1, 6)])

    def test_equal_length_tie_goes_to_first_registered(self):
        text = "big cat sat"
        patterns = _patterns("big cat", "cat sat")
        candidates = [s for p in patterns for s in find_spans(text, p)]
        spans = select_spans(candidates)
        self.assertEqual([s.text for s in spans], ["big cat"])

    def test_no_overlap_invariant(self):
        """Test that accepted spans never overlap pairwise."""
        text = "The quick brown fox jumps over the lazy dog, and the quick dog jumps back."
        patterns = _patterns("quick brown", "brown fox", "the quick", "dog", "jumps ... back", "the", "fox jumps")
        candidates = [s for p in patterns for s in find_spans(text, p)]
        spans = select_spans(candidates)
        self.assertTrue(spans)
        for i, a in enumerate(spans):
            for b in spans[i + 1:]:
                self.assertFalse(spans_overlap(a.start, a.end, b.start, b.end), (a, b))

    def test_segments_without_spans(self):
        segments = build_segments("plain text", [])
        self.assertEqual(len(segments), 1)
        self.assertFalse(segments[0].is_match)

    def test_resolution_segments_cover_text(self):
        text = "run here and run there"
        pattern = LexicalPattern("run")
        resolution = resolve_overlaps(text, find_spans(text, pattern))
        self.assertEqual(len(resolution.spans), 2)
        self.assertEqual("".join(s.text for s in resolution.segments), text)
        self.assertEqual([s.is_match for s in resolution.segments], [True, False, True, False])


class TestAnnotateParagraph(unittest.TestCase):
    """Test cases for the auto-annotation matcher."""

    def test_round_trip_reconstruction(self):
        """Test that segment texts concatenate back to the paragraph."""
        paragraphs = [
            "He was running fast, then he ran out of breath.",
            "Take the weather into account before running.",
            "Nothing to see here.",
            "",
        ]
        patterns = _patterns("running fast", "take ... into account", "run*", "breath", "(n)")
        for paragraph in paragraphs:
            segments = annotate_paragraph(paragraph, patterns)
            self.assertEqual("".join(s.text for s in segments), paragraph)

    def test_fallback_single_literal_segment(self):
        segments = annotate_paragraph("No matches in here.", _patterns("zebra"))
        self.assertEqual(len(segments), 1)
        self.assertFalse(segments[0].is_match)
        self.assertEqual(segments[0].text, "No matches in here.")

    def test_malformed_pattern_skipped(self):
        """Test that one malformed pattern does not break the pass."""
        segments = annotate_paragraph("the cat sat", _patterns("(n)", "cat"))
        matched = [s.text for s in segments if s.is_match]
        self.assertEqual(matched, ["cat"])

    def test_render_keys(self):
        paragraph = "Run, run, run!"
        segments = annotate_paragraph(paragraph, [LexicalPattern("run", pattern_id="p1")], paragraph_index=2)
        keys = [s.key for s in segments if s.is_match]
        self.assertEqual(keys, ["p1-2-0", "p1-2-1", "p1-2-2"])

    def test_sentiment_filter(self):
        patterns = [
            LexicalPattern("happy", pattern_id="a", sentiment="positive", order=0),
            LexicalPattern("sad", pattern_id="b", sentiment="negative", order=1),
        ]
        self.assertEqual(len(filter_by_sentiment(patterns, None)), 2)
        self.assertEqual(len(filter_by_sentiment(patterns, "all")), 2)
        self.assertEqual([p.pattern_id for p in filter_by_sentiment(patterns, "negative")], ["b"])

        segments = annotate_paragraph("happy and sad", patterns, sentiment="positive")
        self.assertEqual([s.text for s in segments if s.is_match], ["happy"])

    def test_annotate_passage(self):
        passage = annotate_passage(["one cat", "no match", "cat two"], _patterns("cat"))
        self.assertEqual(len(passage), 3)
        self.assertEqual([s.key for s in passage[0] if s.is_match], ["p0-0-0"])
        self.assertFalse(any(s.is_match for s in passage[1]))
        self.assertEqual([s.key for s in passage[2] if s.is_match], ["p0-2-0"])


if __name__ == "__main__":
    unittest.main()
