"""
Unit tests for lexical patterns and the span finder.
"""
import unittest
import sys
from pathlib import Path

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from lexspan.patterns import (
    LexicalPattern,
    PatternError,
    PatternKind,
    compile_pattern,
    load_patterns,
    normalize_key,
)
from lexspan.span_finder import MatchSpan, SpanFinder, find_spans


class TestLexicalPattern(unittest.TestCase):
    """Test cases for pattern parsing."""

    def test_pos_tag_stripped(self):
        """Test that '(v)' style annotations are not part of the search key."""
        self.assertEqual(LexicalPattern("run (v)").search_key, "run")
        self.assertEqual(LexicalPattern("take (sb's) advice").search_key, "take sb's advice")

    def test_kind_detection(self):
        self.assertEqual(LexicalPattern("take ... into account").kind, PatternKind.GAP)
        self.assertEqual(LexicalPattern("run*").kind, PatternKind.WILDCARD)
        self.assertEqual(LexicalPattern("running fast").kind, PatternKind.LITERAL)

    def test_annotation_only_pattern_is_malformed(self):
        """Test that a pattern empty after stripping raises PatternError."""
        with self.assertRaises(PatternError):
            compile_pattern(LexicalPattern("(n)"))

    def test_wildcard_only_pattern_is_malformed(self):
        with self.assertRaises(PatternError):
            compile_pattern(LexicalPattern("*"))

    def test_from_item(self):
        item = {"id": "42", "targetLexeme": "rely on", "phase2Annotation": {"sentiment": "neutral"}}
        pattern = LexicalPattern.from_item(item, order=3)
        self.assertEqual(pattern.text, "rely on")
        self.assertEqual(pattern.pattern_id, "42")
        self.assertEqual(pattern.sentiment, "neutral")
        self.assertEqual(pattern.order, 3)

    def test_load_patterns_dedupes_keeping_first(self):
        """Test that accent/case duplicates are dropped and empty targets skipped."""
        items = [
            {"id": "1", "targetLexeme": "Café"},
            {"id": "2", "targetLexeme": "cafe"},
            {"id": "3", "targetLexeme": ""},
            {"id": "4", "targetLexeme": "tea", "phase2Annotation": {"sentiment": "positive"}},
        ]
        patterns = load_patterns(items)
        self.assertEqual([p.pattern_id for p in patterns], ["1", "4"])
        self.assertEqual([p.order for p in patterns], [0, 1])
        self.assertEqual(patterns[1].sentiment, "positive")

    def test_normalize_key(self):
        self.assertEqual(normalize_key("  Crème   BRÛLÉE "), "creme brulee")


class TestSpanFinder(unittest.TestCase):
    """Test cases for raw span search."""

    def test_case_insensitive_word_bounded(self):
        spans = find_spans("Run, rerun and run again.", LexicalPattern("run"))
        self.assertEqual([s.text for s in spans], ["Run", "run"])
        self.assertEqual([s.start for s in spans], [0, 15])

    def test_wildcard_expands_word_characters(self):
        spans = find_spans("He runs while running.", LexicalPattern("run*"))
        self.assertEqual([s.text for s in spans], ["runs", "running"])

    def test_gap_pattern_spans_the_gap(self):
        text = "Please take it into account."
        spans = find_spans(text, LexicalPattern("take ... into account"))
        self.assertEqual(len(spans), 1)
        self.assertEqual(spans[0].text, "take it into account")
        self.assertEqual(text[spans[0].start:spans[0].end], spans[0].text)

    def test_gap_pattern_with_three_parts(self):
        spans = find_spans("not only red but also blue", LexicalPattern("not ... but ... blue"))
        self.assertEqual(len(spans), 1)
        self.assertEqual(spans[0].text, "not only red but also blue")

    def test_scan_is_restartable(self):
        """Test that iterating twice yields the same spans."""
        finder = SpanFinder("a cat and a cat", LexicalPattern("cat"))
        first = [(s.start, s.end) for s in finder]
        second = [(s.start, s.end) for s in finder]
        self.assertEqual(first, [(2, 5), (12, 15)])
        self.assertEqual(first, second)

    def test_malformed_pattern_fails_before_scanning(self):
        with self.assertRaises(PatternError):
            SpanFinder("anything", LexicalPattern("(adj)"))

    def test_empty_span_rejected(self):
        with self.assertRaises(ValueError):
            MatchSpan(start=3, end=3, text="", pattern=LexicalPattern("x"))


if __name__ == "__main__":
    unittest.main()
