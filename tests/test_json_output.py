"""Tests for skills.json_output — tolerant parsing of model output.

Covers fence stripping, LaTeX escape repair and object salvage with the
kind of text models actually produce.
"""

import json

import pytest

from skills.json_output import iter_json_objects, load_json_output, repair_json_escapes, strip_code_fences


# ── strip_code_fences ─────────────────────────────────────────


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n[1, 2]\n```') == "[1, 2]"

    def test_no_fence_is_trimmed(self):
        assert strip_code_fences('  {"a": 1}\n') == '{"a": 1}'


# ── repair_json_escapes ───────────────────────────────────────


class TestRepairJsonEscapes:
    """LaTeX backslashes become valid JSON escapes."""

    def test_simple_latex_commands(self):
        raw = r'{"q": "$\sqrt{x}$ and $\int$"}'
        obj = json.loads(repair_json_escapes(raw))
        assert "\\sqrt" in obj["q"]
        assert "\\int" in obj["q"]

    def test_frac_is_not_a_form_feed(self):
        raw = r'{"q": "$\frac{1}{2}$"}'
        obj = json.loads(repair_json_escapes(raw))
        assert obj["q"] == "$\\frac{1}{2}$"

    def test_begin_end(self):
        raw = r'{"q": "$\begin{pmatrix} 2 \\ 4 \end{pmatrix}$"}'
        obj = json.loads(repair_json_escapes(raw))
        assert "\\begin{pmatrix}" in obj["q"]
        assert "\\end{pmatrix}" in obj["q"]

    def test_real_escapes_untouched(self):
        raw = r'{"q": "line\n 2 \"quoted\" 你"}'
        assert repair_json_escapes(raw) == raw
        assert json.loads(raw)["q"] == 'line\n 2 "quoted" 你'


# ── load_json_output ──────────────────────────────────────────


class TestLoadJsonOutput:
    def test_fenced_object(self):
        assert load_json_output('```json\n{"hanzi": "你好"}\n```') == {"hanzi": "你好"}

    def test_repairs_only_when_needed(self):
        assert load_json_output(r'{"q": "\sqrt{2}"}') == {"q": "\\sqrt{2}"}

    @pytest.mark.parametrize("raw", [None, "", "   ", "Sorry, I cannot help with that."])
    def test_unparseable_raises_value_error(self, raw):
        with pytest.raises(ValueError):
            load_json_output(raw)


# ── iter_json_objects ─────────────────────────────────────────


class TestIterJsonObjects:
    def test_salvages_complete_objects_from_truncated_array(self):
        text = '[{"a": 1}, {"a": "}"}, {"a": 3'
        assert list(iter_json_objects(text)) == [{"a": 1}, {"a": "}"}]

    def test_skips_malformed_block(self):
        text = '{"a": 1} {broken: yes} {"b": 2}'
        assert list(iter_json_objects(text)) == [{"a": 1}, {"b": 2}]

    def test_nothing_to_salvage(self):
        assert list(iter_json_objects("no json here")) == []
