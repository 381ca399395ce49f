"""Unit tests for structure-preserving transcript correction helpers.

WHY: The provider's caption timings depend on the transcript keeping its
exact shape. A merge that drops a placeholder, reorders chunks, or quietly
accepts a short correction list would misalign every caption after it.

HOW: Pure-function tests of has_text, extract_correction_input and
merge_corrections using small hand-written chunk lists.

RULES:
- No I/O; inputs are literal lists
"""

import pytest

from caption_orchestrator.core.transcript import (
    CorrectionShapeError,
    extract_correction_input,
    has_text,
    merge_corrections,
)


class TestHasText:
    def test_non_empty_string(self):
        assert has_text({"text": "hi"})

    @pytest.mark.parametrize("chunk", [{}, {"text": ""}, {"text": None}, {"text": 5}])
    def test_placeholders(self, chunk):
        assert not has_text(chunk)


class TestExtractCorrectionInput:
    def test_projects_text_only(self):
        chunks = [
            {"text": "helo", "start": 0.1, "speaker": "A"},
            {"start": 0.5},
            {"text": "", "start": 0.6},
            {"text": "wrold", "start": 0.9},
        ]
        assert extract_correction_input(chunks) == [{"text": "helo"}, {"text": "wrold"}]

    def test_empty_transcript(self):
        assert extract_correction_input([]) == []


class TestMergeCorrections:
    def test_preserves_order_and_placeholder(self):
        chunks = [{"text": "helo"}, {}, {"text": "wrold"}]
        corrected = [{"text": "hello"}, {"text": "world"}]
        assert merge_corrections(chunks, corrected) == [{"text": "hello"}, {}, {"text": "world"}]

    def test_metadata_passes_through(self):
        chunks = [
            {"text": "helo", "start": 0.0, "end": 0.4, "style": {"bold": True}},
            {"text": "", "start": 0.4, "end": 0.5},
        ]
        merged = merge_corrections(chunks, [{"text": "hello"}])
        assert merged == [
            {"text": "hello", "start": 0.0, "end": 0.4, "style": {"bold": True}},
            {"text": "", "start": 0.4, "end": 0.5},
        ]

    def test_does_not_mutate_input(self):
        chunks = [{"text": "helo"}, {}]
        merge_corrections(chunks, [{"text": "hello"}])
        assert chunks == [{"text": "helo"}, {}]

    def test_too_few_corrections_raises(self):
        with pytest.raises(CorrectionShapeError) as exc_info:
            merge_corrections([{"text": "a"}, {"text": "b"}], [{"text": "A"}])
        assert exc_info.value.expected == 2
        assert exc_info.value.received == 1

    def test_too_many_corrections_raises(self):
        with pytest.raises(CorrectionShapeError):
            merge_corrections([{"text": "a"}, {}], [{"text": "A"}, {"text": "B"}])

    def test_all_placeholders_with_empty_corrections(self):
        chunks = [{}, {"text": ""}]
        assert merge_corrections(chunks, []) == [{}, {"text": ""}]
