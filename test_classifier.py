"""
Vertical classification: keyword tier and LLM re-classification tier.
"""

import asyncio

import pytest

from topline.curation.classifier import ClassificationError, LLMVerticalClassifier, VerticalClassifier
from topline.schemas import Vertical


# ════════════════════════════════════════════════════════════════════
# Tier 1: keywords
# ════════════════════════════════════════════════════════════════════

def test_terms_match_on_word_boundaries_only(config):
    classifier = VerticalClassifier(config)

    # "aig" inside "straight", "ai" inside "said" / "maintain"
    report = classifier.explain("Straight talk: retailer said it will maintain prices", "")
    assert Vertical.INSURANCE.value not in report
    assert Vertical.TECHNOLOGY_MEDIA.value not in report
    assert classifier.classify("Straight talk: retailer said it will maintain prices", "") == Vertical.CONSUMER_RETAIL

    assert classifier.classify("AIG expands its cyber book", "") == Vertical.INSURANCE


def test_company_mentions_outweigh_keywords(config):
    classifier = VerticalClassifier(config)
    report = classifier.explain("Visa signs deal with a grocery retailer", "")
    assert report[Vertical.FINANCIAL_SERVICES.value]["score"] == 3
    assert report[Vertical.CONSUMER_RETAIL.value]["score"] == 2
    assert classifier.classify("Visa signs deal with a grocery retailer", "") == Vertical.FINANCIAL_SERVICES


def test_tie_goes_to_fallback_vertical(config):
    classifier = VerticalClassifier(config)
    report = classifier.explain("Grocery chain opens hospital pharmacy", "")
    assert report[Vertical.CONSUMER_RETAIL.value]["score"] == 1
    assert report[Vertical.HEALTHCARE.value]["score"] == 1
    assert classifier.classify("Grocery chain opens hospital pharmacy", "") == config.fallback_vertical


def test_unmatched_items_route_to_fallback_or_other(config):
    classifier = VerticalClassifier(config)
    assert classifier.classify("Fresh campaign ideas for the holidays", "") == config.fallback_vertical
    assert classifier.classify("Local bakery wins regional prize", "") == Vertical.OTHER


def test_source_hint_does_not_override_evidence(config):
    classifier = VerticalClassifier(config)
    vertical = classifier.classify("Hilton adds hotels in Lisbon", "", source_hint=Vertical.FINANCIAL_SERVICES)
    assert vertical == Vertical.TRAVEL_HOSPITALITY


def test_from_label_is_case_insensitive_and_strict():
    assert Vertical.from_label(' "technology &  media" ') == Vertical.TECHNOLOGY_MEDIA
    assert Vertical.from_label("Healthcare.") == Vertical.HEALTHCARE
    with pytest.raises(ValueError):
        Vertical.from_label("Technology")


# ════════════════════════════════════════════════════════════════════
# Tier 2: LLM re-classification
# ════════════════════════════════════════════════════════════════════

def test_llm_classifier_accepts_json_and_bare_labels():
    assert LLMVerticalClassifier.parse_label('{"vertical": "Insurance"}') == Vertical.INSURANCE
    assert LLMVerticalClassifier.parse_label('```json\n{"vertical": "Telecom"}\n```') == Vertical.TELECOM
    assert LLMVerticalClassifier.parse_label("Automotive\nBecause it is about cars.") == Vertical.AUTOMOTIVE


def test_llm_classifier_escalates_after_invalid_answer(config, scripted_llm):
    llm = scripted_llm(["I think it is about cars", '{"vertical": "Automotive"}'])
    classifier = LLMVerticalClassifier(llm, config)

    vertical = asyncio.run(classifier.classify("Rivian opens new plant", "Electric vehicle maker expands."))

    assert vertical == Vertical.AUTOMOTIVE
    assert len(llm.calls) == 2
    # Second attempt uses the simplified prompt
    assert "Reply with the single best label" in llm.calls[1]["prompt"]
    assert not llm.calls[1]["lite"]


def test_llm_classifier_fails_hard_after_all_strategies(config, scripted_llm):
    llm = scripted_llm(["no idea", '{"vertical": "Space Tourism"}', TimeoutError()])
    classifier = LLMVerticalClassifier(llm, config)

    with pytest.raises(ClassificationError) as excinfo:
        asyncio.run(classifier.classify("Mystery story", "Nothing to go on."))

    assert len(excinfo.value.failures) == 3
    assert [c["lite"] for c in llm.calls] == [False, False, True]


def test_llm_classifier_respects_candidate_list(config, scripted_llm):
    llm = scripted_llm(default='{"vertical": "Healthcare"}')
    classifier = LLMVerticalClassifier(llm, config)

    with pytest.raises(ClassificationError):
        asyncio.run(classifier.classify(
            "Insurer covers telehealth visits", "",
            candidates=[Vertical.INSURANCE, Vertical.AUTOMOTIVE],
        ))
    assert len(llm.calls) == config.max_generation_attempts
