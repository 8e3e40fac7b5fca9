"""
Enrichment: specificity validation, strategy escalation and metric anchoring.
"""

import asyncio
import json

import pytest

from topline.config import GENERIC_PHRASES
from topline.curation.enricher import (
    ContentEnricher, EnrichmentError, format_metric_value, is_specific, specificity_problem,
)
from topline.schemas import ContentKind, Vertical

TITLE = "Acme Launches AI Ad Platform"
CONTENT = "Acme unveiled a self-serve ad platform that lets brand marketers buy retail media."

GOOD = json.dumps({
    "why_it_matters": "Acme's self-serve platform gives brand marketers a new way to buy retail media directly.",
    "talk_track": "Ask whether Acme's platform launch changes who on their team owns retail media buying.",
})


# ════════════════════════════════════════════════════════════════════
# Specificity validation
# ════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("phrase", GENERIC_PHRASES)
def test_every_denylisted_phrase_is_rejected(phrase):
    # Plenty of overlap with the source, so only the phrase can fail it
    generated = f"Acme's self-serve ad platform for retail media: {phrase.upper()} here."
    assert not is_specific(f"{TITLE} {CONTENT}", generated)
    assert "generic phrase" in specificity_problem(f"{TITLE} {CONTENT}", generated)


def test_low_overlap_is_rejected():
    generated = "Vendors should prepare for budget changes next quarter."
    problem = specificity_problem(f"{TITLE} {CONTENT}", generated)
    assert problem.startswith("only")


def test_specific_text_passes():
    generated = "Acme's platform lets marketers buy retail media without an agency."
    assert is_specific(f"{TITLE} {CONTENT}", generated)


@pytest.mark.parametrize("value, unit, expected", [
    (74.8, "billion USD", "$74.8B"),
    (12, "million", "$12M"),
    (23.5, "percent", "23.5%"),
    (40, "%", "40%"),
    (19.99, "usd", "$19.99"),
    (3, "", "3"),
    (1200, "stores", "1200 stores"),
    (1.005, "billion", "$1.005B"),
    (0.125, "percent", "0.125%"),
    (0.1 + 0.2, "percent", "0.3%"),
    (-2.75, "%", "-2.75%"),
])
def test_format_metric_value(value, unit, expected):
    assert format_metric_value(value, unit) == expected


# ════════════════════════════════════════════════════════════════════
# Article enrichment
# ════════════════════════════════════════════════════════════════════

def test_enrich_accepts_first_valid_response(config, scripted_llm):
    llm = scripted_llm([GOOD])
    enrichment = asyncio.run(ContentEnricher(llm, config).enrich(TITLE, CONTENT, "Test Wire", Vertical.TECHNOLOGY_MEDIA))

    assert enrichment.strategy == "detailed"
    assert "Acme" in enrichment.why_it_matters
    assert len(llm.calls) == 1
    assert "Title: Acme Launches AI Ad Platform" in llm.calls[0]["prompt"]


def test_enrich_escalates_past_generic_and_broken_output(config, scripted_llm):
    generic = json.dumps({
        "why_it_matters": "Digital transformation is accelerating across Acme's platform and retail media.",
        "talk_track": "Use this to discuss Acme's platform.",
    })
    llm = scripted_llm([generic, "```json\n" + GOOD + "\n```"])

    enrichment = asyncio.run(ContentEnricher(llm, config).enrich(TITLE, CONTENT, "Test Wire", Vertical.TECHNOLOGY_MEDIA))

    assert enrichment.strategy == "simplified"
    assert len(llm.calls) == 2


def test_enrich_uses_lite_model_last(config, scripted_llm):
    llm = scripted_llm(["not json at all", '{"why_it_matters": ""}', GOOD])
    enrichment = asyncio.run(ContentEnricher(llm, config).enrich(TITLE, CONTENT, "Test Wire", Vertical.TECHNOLOGY_MEDIA))

    assert enrichment.strategy == "lite_model"
    assert [c["lite"] for c in llm.calls] == [False, False, True]


def test_enrich_accepts_camel_case_keys(config, scripted_llm):
    camel = json.dumps({
        "whyItMatters": "Acme's platform gives marketers a direct retail media buy.",
        "talkTrack": "Ask how Acme's platform fits their retail media plans.",
    })
    enrichment = asyncio.run(
        ContentEnricher(scripted_llm([camel]), config).enrich(TITLE, CONTENT, "Test Wire", Vertical.TECHNOLOGY_MEDIA)
    )
    assert enrichment.talk_track.startswith("Ask how Acme")


def test_enrich_fails_hard_without_placeholder(config, scripted_llm):
    generic = json.dumps({
        "why_it_matters": "The market is evolving and trends are changing.",
        "talk_track": "How are these technology trends impacting your digital strategy?",
    })
    llm = scripted_llm(default=generic)

    with pytest.raises(EnrichmentError) as excinfo:
        asyncio.run(ContentEnricher(llm, config).enrich(TITLE, CONTENT, "Test Wire", Vertical.TECHNOLOGY_MEDIA))

    assert len(llm.calls) == config.max_generation_attempts
    assert len(excinfo.value.failures) == config.max_generation_attempts


# ════════════════════════════════════════════════════════════════════
# Metric enrichment
# ════════════════════════════════════════════════════════════════════

METRIC_TITLE = "US retail media ad spend"
METRIC_SUMMARY = "Retail media ad spend in the US will reach $74.8B this year, per eMarketer."


def test_metric_enrichment_requires_value_in_both_fields(config, scripted_llm):
    missing_value = json.dumps({
        "why_it_matters": "At $74.8B, retail media ad spend now rivals national TV budgets.",
        "talk_track": "Ask how their retail media spend compares with last year.",
    })
    anchored = json.dumps({
        "why_it_matters": "At $74.8B, retail media ad spend now rivals national TV budgets.",
        "talk_track": "eMarketer puts US retail media at $74.8B; ask how their spend compares.",
    })
    llm = scripted_llm([missing_value, anchored])

    enrichment = asyncio.run(ContentEnricher(llm, config).enrich_metric(
        METRIC_TITLE, 74.8, "billion USD", "eMarketer", METRIC_SUMMARY, Vertical.CONSUMER_RETAIL,
    ))

    assert enrichment.strategy == "strict_example"
    assert "$74.8B" in enrichment.why_it_matters and "$74.8B" in enrichment.talk_track
    assert "Formatted value: $74.8B" in llm.calls[1]["prompt"]


def test_metric_enrichment_fails_when_value_never_quoted(config, scripted_llm):
    vague = json.dumps({
        "why_it_matters": "Retail media ad spend keeps climbing in the US.",
        "talk_track": "Ask how their retail media spend is trending.",
    })
    with pytest.raises(EnrichmentError):
        asyncio.run(ContentEnricher(scripted_llm(default=vague), config).enrich_metric(
            METRIC_TITLE, 74.8, "billion USD", "eMarketer", METRIC_SUMMARY, Vertical.CONSUMER_RETAIL,
        ))


# ════════════════════════════════════════════════════════════════════
# Regeneration check
# ════════════════════════════════════════════════════════════════════

def test_needs_regeneration(config, scripted_llm, make_record):
    enricher = ContentEnricher(scripted_llm(), config)
    good = json.loads(GOOD)

    fine = make_record(title=TITLE, summary=CONTENT, **good)
    assert not enricher.needs_regeneration(fine)

    empty = make_record(title=TITLE, summary=CONTENT)
    assert enricher.needs_regeneration(empty)

    boilerplate = make_record(
        title=TITLE, summary=CONTENT,
        why_it_matters="Acme's platform shows the market is evolving for retail media.",
        talk_track=good["talk_track"],
    )
    assert enricher.needs_regeneration(boilerplate)

    metric = make_record(
        title=METRIC_TITLE, summary=METRIC_SUMMARY, kind=ContentKind.METRIC, value=74.8, unit="billion USD",
        why_it_matters="Retail media ad spend keeps climbing in the US.",
        talk_track="Ask how their retail media spend is trending.",
    )
    assert enricher.needs_regeneration(metric)
