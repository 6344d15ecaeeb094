import logging

import pytest

from ad_segmenter import Segmenter, SegmenterConfig, segment_text
from ad_segmenter.errors import ConfigError, ProductRulesError
from tests.utils import ad_texts, assert_well_formed, fixture_rules, minimal_rules

URGENCY = "いまならアンケート回答で半額の1,815円（税込）でスタート可能"

TRICKY_INPUTS = [
    "X※1\n※1：definition",
    "殺菌※2する薬用ジェル",
    "【美白効果】のご案内",
    URGENCY,
    "効果※1※2があります。\n\n※1：説明\n※2補足",
    "【A】【B】\n\n\n本文。今だけ500円！期間限定。",
    "※1※2※3",
    "ヒアルロン酸※1配合。浸透※2する。殺菌※3も。\n※1保湿成分\n※2角質層まで",
    "【新発売】！話題のジェルです。",
    "効果※1【美白効果】のご案内",
]


@pytest.fixture
def segmenter() -> Segmenter:
    return Segmenter(fixture_rules())


def test_empty_input_yields_no_segments_and_no_warnings(
    segmenter: Segmenter, caplog: pytest.LogCaptureFixture
):
    with caplog.at_level(logging.WARNING):
        for text in ("", "   \n  "):
            result = segmenter.segment(text)
            assert result.segments == []
            assert result.token_count == 0

    assert caplog.records == []


def test_definition_stays_out_of_the_referencing_segment(segmenter: Segmenter):
    segments = segmenter.segment("X※1\n※1：definition").segments

    assert [s.text for s in segments] == ["X※1"]
    assert all("definition" not in s.text for s in segments)


def test_split_keyword_fragment_is_rejoined():
    text = "殺菌※2する薬用ジェル"

    for rules in (minimal_rules(), fixture_rules()):
        segments = segment_text(text, rules)
        assert [(s.id, s.text) for s in segments] == [("seg_001", text)]


def test_structural_delimiter_becomes_its_own_claim(segmenter: Segmenter):
    result = segmenter.segment("【美白効果】のご案内", debug=True)

    assert [(s.text, s.type) for s in result.segments] == [
        ("【美白効果】", "claim"),
        ("のご案内", "explanation"),
    ]
    assert result.debug is not None
    top = max(result.debug.candidates, key=lambda c: c.priority)
    assert top.priority == 100
    assert top.tokens[0].kind == "structural-delimiter"


def test_exclamation_after_delimiter_stays_with_it():
    segments = segment_text("【新発売】！話題のジェルです。", minimal_rules())

    assert [s.text for s in segments] == ["【新発売】！", "話題のジェルです。"]


def test_delimiter_after_marker_is_not_folded_into_it():
    segments = segment_text("効果※1【美白効果】のご案内", minimal_rules())

    assert [s.text for s in segments] == ["効果※1", "【美白効果】", "のご案内"]


def test_urgency_clause_is_a_single_claim(segmenter: Segmenter):
    result = segmenter.segment(URGENCY, debug=True)

    assert [(s.text, s.type) for s in result.segments] == [(URGENCY, "claim")]
    assert result.debug is not None
    assert any(
        c.source == "urgency-price" and c.length == len(URGENCY)
        for c in result.debug.candidates
    )


def test_multiple_markers_fold_into_one_segment(segmenter: Segmenter):
    segments = segmenter.segment("効果※1※2があります。").segments

    assert [s.text for s in segments] == ["効果※1※2があります。"]


@pytest.mark.parametrize("text", TRICKY_INPUTS)
def test_segments_are_disjoint_ordered_source_slices(segmenter: Segmenter, text: str):
    assert_well_formed(segmenter.segment(text).segments, text)


def test_fixture_corpus_is_well_covered(segmenter: Segmenter):
    for name, text in ad_texts():
        result = segmenter.segment(text)
        assert result.coverage >= 0.95, name
        assert_well_formed(result.segments, text)


def test_segment_is_idempotent(segmenter: Segmenter):
    for _, text in ad_texts():
        assert segmenter.segment(text).segments == segmenter.segment(text).segments


def test_debug_info_only_when_requested(segmenter: Segmenter):
    text = "殺菌※1する。\n※1殺菌は消毒の作用機序として"

    assert segmenter.segment(text).debug is None
    debug = segmenter.segment(text, debug=True).debug
    assert debug is not None
    assert {t.kind for t in debug.tokens} >= {"annotation-marker", "annotation-text"}
    assert any(c.merged for c in debug.candidates)

    always = Segmenter(fixture_rules(), SegmenterConfig(debug=True))
    assert always.segment(text).debug is not None


def test_segment_logs_summary_at_info(
    segmenter: Segmenter, caplog: pytest.LogCaptureFixture
):
    with caplog.at_level(logging.INFO, logger="ad_segmenter.pipeline"):
        segmenter.segment("【見出し】本文です。")

    assert "2 tokens -> 2 segments" in caplog.text


def test_missing_rules_are_fatal():
    with pytest.raises(ProductRulesError):
        Segmenter(None)  # type: ignore[arg-type]
    with pytest.raises(ProductRulesError):
        Segmenter("HA")  # type: ignore[arg-type]


def test_invalid_config_is_rejected():
    with pytest.raises(ConfigError):
        Segmenter(fixture_rules(), SegmenterConfig(overlap_threshold=0.0))


def test_config_catalog_path_is_loaded(tmp_path):
    catalog = tmp_path / "catalog.yaml"
    catalog.write_text(
        "version: 3\npatterns:\n"
        "  - name: gift\n    pattern: 'プレゼント[^。\\n]*'\n    priority: 90\n",
        encoding="utf-8",
    )
    segmenter = Segmenter(
        fixture_rules(), SegmenterConfig(pattern_catalog_path=str(catalog))
    )

    assert segmenter.catalog.version == 3
    assert [rule.name for rule in segmenter.catalog.rules] == ["gift"]


def test_benchmark_reports_ordered_percentiles(segmenter: Segmenter):
    _, text = ad_texts()[0]
    stats = segmenter.benchmark(text, iterations=5)

    assert stats.iterations == 5
    assert stats.min <= stats.p50 <= stats.p95 <= stats.p99 <= stats.max
    assert stats.min <= stats.avg <= stats.max
    with pytest.raises(ValueError):
        segmenter.benchmark(text, iterations=0)


def test_typical_ad_is_segmented_quickly(segmenter: Segmenter):
    corpus = "".join(text for _, text in ad_texts())
    text = (corpus * (5000 // len(corpus) + 1))[:5000]

    stats = segmenter.benchmark(text, iterations=5)

    assert stats.p50 < 100


@pytest.mark.parametrize(
    "text",
    [
        "ヒアルロン酸※1配合。" * 455,
        "あ※1" * 1667,
        "肌に潤いを与える。" * 556,
    ],
    ids=["footnoted-sentences", "dense-markers", "plain-sentences"],
)
def test_dense_input_stays_within_worst_case_latency(segmenter: Segmenter, text: str):
    stats = segmenter.benchmark(text, iterations=3)

    assert stats.p50 < 500
