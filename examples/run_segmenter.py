"""
Tiny helper script to eyeball segmentation of a short ad.
Point RULES_PATH at a real product rule file before running.
"""

from __future__ import annotations

from ad_segmenter import Segmenter, load_product_rules

RULES_PATH = "tests/fixtures/products/HA.json"


def main() -> None:
    segmenter = Segmenter(load_product_rules(RULES_PATH))
    samples = [
        "【目元の乾燥小ジワに】\nヒアルロン酸※1が角質層まで浸透※2。\n※1保湿成分\n※2角質層まで",
        "いまならアンケート回答で半額の1,815円（税込）でスタート可能",
    ]

    for sample in samples:
        result = segmenter.segment(sample)
        print("-" * 40)
        for segment in result.segments:
            print(f"{segment.id} [{segment.type}] {segment.text!r}")
        print(f"Coverage: {result.coverage:.1%} in {result.processing_time_ms:.2f}ms")


if __name__ == "__main__":
    main()
