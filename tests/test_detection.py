import pytest

from ad_segmenter.catalog import catalog_from_dict
from ad_segmenter.detection import TokenView, detect
from ad_segmenter.errors import ProductRulesError
from ad_segmenter.tokenization import tokenize
from tests.utils import fixture_rules, minimal_rules

URGENCY = "いまならアンケート回答で半額の1,815円（税込）でスタート可能"


def test_structural_candidate_has_top_priority():
    candidates = detect(tokenize("【美白効果】のご案内"), fixture_rules())

    assert [(c.source, c.priority, c.type) for c in candidates] == [
        ("structural", 100, "claim"),
        ("fallback", 10, "explanation"),
    ]


def test_urgency_phrase_is_one_candidate_spanning_the_clause():
    candidates = detect(tokenize(URGENCY), fixture_rules())

    top = candidates[0]
    assert top.source == "urgency-price"
    assert (top.priority, top.type) == (90, "cta")
    assert (top.start, top.end) == (0, len(URGENCY))
    assert [c.source for c in candidates if c.priority >= 85] == ["urgency-price"]


def test_price_mention_without_commercial_phrase():
    candidates = detect(tokenize("通常価格3,980円（税込）。"), fixture_rules())

    assert candidates[0].source == "price"
    assert candidates[0].priority == 85


def test_limited_offer_and_refund_patterns():
    text = "期間限定の特別セット。全額返金保証つき。"
    sources = {c.source for c in detect(tokenize(text), fixture_rules())}

    assert {"limited-offer", "free-or-refund"} <= sources


def test_required_keyword_candidates_only():
    rules = fixture_rules()
    candidates = detect(tokenize("角質層まで浸透するジェル。ハリのある肌へ。"), rules)
    keyword_sources = [c.source for c in candidates if c.source.startswith("keyword:")]

    assert keyword_sources == ["keyword:浸透"]
    keyword = next(c for c in candidates if c.source == "keyword:浸透")
    assert keyword.priority == 80
    assert keyword.type == "claim"


def test_keyword_match_spans_marker_tokens():
    tokens = tokenize("殺菌※2する薬用ジェル")
    candidates = detect(tokens, fixture_rules())
    keyword = candidates[0]

    assert keyword.source == "keyword:殺菌"
    assert [t.kind for t in keyword.tokens] == ["text", "annotation-marker", "text"]
    assert [t.keyword for t in keyword.tokens] == ["殺菌", None, None]
    assert all(t.keyword is None for t in tokens)


def test_fallback_priorities_by_token_kind():
    tokens = tokenize("効果※1\n※1：説明")
    by_kind = {
        c.tokens[0].kind: c.priority for c in detect(tokens, minimal_rules())
    }

    assert by_kind == {"text": 10, "annotation-marker": 5, "annotation-text": 15}


def test_equal_priorities_keep_detection_order():
    candidates = detect(tokenize("一つ目。二つ目。三つ目。"), minimal_rules())

    assert [c.tokens[0].text for c in candidates] == ["一つ目。", "二つ目。", "三つ目。"]


def test_detect_is_deterministic():
    tokens = tokenize(URGENCY + "。\n殺菌※1する。")
    rules = fixture_rules()

    assert detect(tokens, rules) == detect(tokens, rules)


def test_detect_requires_resolved_rules():
    with pytest.raises(ProductRulesError):
        detect(tokenize("テキスト"), None)  # type: ignore[arg-type]


def test_custom_catalog_replaces_default_patterns():
    catalog = catalog_from_dict(
        {
            "version": 2,
            "patterns": [
                {"name": "gift", "pattern": "プレゼント[^。\n]*", "priority": 90}
            ],
        }
    )
    candidates = detect(tokenize("今だけ500円。ミニボトルをプレゼント。"), minimal_rules(), catalog)

    assert [c.source for c in candidates if c.priority == 90] == ["gift"]


def test_token_view_projects_tokens_on_source_offsets():
    text = "【見出し】\n\n本文です。"
    tokens = tokenize(text)
    view = TokenView(tokens)

    assert len(view.text) == len(text)
    assert view.text[7:] == "本文です。"
    assert view.covering(0, 3) == (tokens[0],)
    assert view.covering(5, 8) == (tokens[1],)
