from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

from ad_segmenter.models import Candidate, Segment, Token
from ad_segmenter.rules import ProductRules, load_product_rules, product_rules_from_dict

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"
ADS_DIR = FIXTURES_DIR / "ads"
PRODUCTS_DIR = FIXTURES_DIR / "products"


def fixture_rules() -> ProductRules:
    """Rule table for the HA fixture product."""
    return load_product_rules(PRODUCTS_DIR / "HA.json")


def minimal_rules(**annotation_rules: Any) -> ProductRules:
    """Rules with only the given annotation rules (keyword -> template)."""
    return product_rules_from_dict(
        {
            "id": "CA",
            "name": "テスト商品",
            "category": "化粧品",
            "approvedEffects": "肌を整える",
            "annotationRules": {
                keyword: {"required": True, "template": template}
                for keyword, template in annotation_rules.items()
            }
            or {"ダミー": {"required": False, "template": "※ダミー"}},
        }
    )


def raw_rules(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": "HA",
        "name": "ヒアロディープパッチ",
        "category": "化粧品",
        "approvedEffects": "乾燥による小ジワを目立たなくする",
        "segmentationKeywords": {"required": ["浸透"], "prohibited": ["若返り"]},
        "annotationRules": {
            "浸透": {"required": True, "template": "※角質層まで", "severity": "high"}
        },
    }
    data.update(overrides)
    return data


def ad_texts() -> list[tuple[str, str]]:
    return [
        (path.name, path.read_text(encoding="utf-8"))
        for path in sorted(ADS_DIR.glob("*.txt"))
    ]


def token(kind: str, text: str, start: int, number: str | None = None) -> Token:
    from ad_segmenter.models import TokenMetadata

    metadata = TokenMetadata(annotation_number=number) if number else None
    return Token(
        kind=kind, text=text, start=start, end=start + len(text), line=1, metadata=metadata
    )


def candidate(
    tokens: Sequence[Token], priority: int = 10, type: str = "explanation"
) -> Candidate:
    return Candidate(tokens=tuple(tokens), type=type, importance=0.5, priority=priority)


def assert_well_formed(segments: Sequence[Segment], text: str) -> None:
    """Segments are ordered, disjoint, sequentially numbered source slices."""
    for index, segment in enumerate(segments, 1):
        assert segment.id == f"seg_{index:03d}"
        assert segment.text == text[segment.start : segment.end]
        assert segment.start < segment.end
    for previous, current in zip(segments, segments[1:]):
        assert previous.end <= current.start
