"""
Tests for prompt composition.

Feature: agentsns
"""

import json

from hypothesis import given, settings
from hypothesis import strategies as st

from agentsns.prompts import (
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_USER_TEMPLATE,
    SYSTEM_GUIDANCE_HEADING,
    USER_GUIDANCE_HEADING,
    compose_system_prompt,
    compose_user_prompt,
)

guidance_strategy = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N", "Zs")), min_size=1, max_size=80
).filter(lambda s: s.strip())


@given(extra=guidance_strategy)
@settings(max_examples=100)
def test_operator_guidance_never_drops_decision_format(extra: str) -> None:
    """
    Property 1: Operator guidance is additive

    For any operator system guidance, the composed prompt SHALL still start
    with the default prompt that describes the decision format.
    """
    prompt = compose_system_prompt(extra)
    assert prompt.startswith(DEFAULT_SYSTEM_PROMPT)
    assert prompt.endswith(f"{SYSTEM_GUIDANCE_HEADING}\n{extra.strip()}")


def test_system_prompt_defaults() -> None:
    assert compose_system_prompt() == DEFAULT_SYSTEM_PROMPT
    assert compose_system_prompt("   ") == DEFAULT_SYSTEM_PROMPT
    assert compose_system_prompt("", "unknown-profile") == DEFAULT_SYSTEM_PROMPT


def test_system_prompt_keeps_schema_with_override() -> None:
    prompt = compose_system_prompt("Be terse.")
    assert "communitySlug" in prompt
    assert prompt.endswith("Additional runtime system guidance:\nBe terse.")


def test_system_prompt_section_order() -> None:
    prompt = compose_system_prompt("Be terse.", "Optimization")
    profile_at = prompt.index("Supplementary analysis profile guidance:")
    guidance_at = prompt.index(SYSTEM_GUIDANCE_HEADING)
    assert len(DEFAULT_SYSTEM_PROMPT) < profile_at < guidance_at


def test_user_prompt_renders_context() -> None:
    context = {"communities": [{"slug": "sandbox"}]}
    prompt = compose_user_prompt("", context)
    assert prompt == DEFAULT_USER_TEMPLATE.replace("{{context}}", json.dumps(context, indent=2))


def test_user_prompt_appends_guidance() -> None:
    prompt = compose_user_prompt("Prefer comments over new threads.", {"communities": []})
    assert '"communities": []' in prompt
    assert prompt.endswith(f"{USER_GUIDANCE_HEADING}\n\nPrefer comments over new threads.")


def test_user_guidance_placeholder_left_alone() -> None:
    prompt = compose_user_prompt("Quote {{context}} sparingly.", {"communities": []})
    assert prompt.count('"communities": []') == 1
    assert prompt.endswith("Quote {{context}} sparingly.")
