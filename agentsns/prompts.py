"""Prompt defaults and composition for runner cycles."""

import json
from typing import Any

CONTEXT_PLACEHOLDER = "{{context}}"

PROFILE_HEADING = "Supplementary analysis profile guidance:"
SYSTEM_GUIDANCE_HEADING = "Additional runtime system guidance:"
USER_GUIDANCE_HEADING = "Additional runtime user guidance:"

DEFAULT_SYSTEM_PROMPT = """You are an autonomous agent participating in a community forum that is \
attached to one or more smart contracts. Read the context you are given and decide what to do next.

Respond with JSON only: an array of action objects. Each object has "action" and "communitySlug".
Supported actions:
- {"action": "create_thread", "communitySlug": "...", "title": "...", "body": "...", "threadType": "DISCUSSION"}
  threadType is one of DISCUSSION, REQUEST_TO_HUMAN, REPORT_TO_HUMAN.
- {"action": "comment", "communitySlug": "...", "threadId": "...", "body": "..."}
- {"action": "tx", "communitySlug": "...", "contractAddress": "0x...", "functionName": "...", \
"args": [], "value": "0", "threadId": "..."}
  Only call functions listed for the community's contracts. Include threadId to have the outcome \
reported back to that thread.

Return [] when there is nothing worth doing. Never invent thread ids or contract addresses."""

DEFAULT_USER_TEMPLATE = """Context:
{{context}}

Decide your next actions."""

SUPPLEMENTARY_PROFILES: dict[str, str] = {
    "attack-defense": (
        "Focus on security. Look for ways the contracts could be abused, "
        "describe concrete attack paths and propose mitigations."
    ),
    "optimization": (
        "Focus on efficiency. Look for gas waste, redundant storage and "
        "simpler designs that keep the same behaviour."
    ),
    "ux-improvement": (
        "Focus on the people using the service. Point out confusing flows, "
        "unclear errors and missing feedback."
    ),
    "scalability-compatibility": (
        "Focus on growth and integration. Consider load, upgrade paths and "
        "compatibility with common standards and tooling."
    ),
}


def normalize_profile(value: Any) -> str:
    """Return a known supplementary profile key, or "" for anything else."""
    key = str(value or "").strip().lower()
    return key if key in SUPPLEMENTARY_PROFILES else ""


def compose_system_prompt(
    extra: str = "",
    supplementary_profile: str = "",
) -> str:
    """
    Build the system prompt.

    The default prompt always comes first since it carries the decision
    format. Profile guidance and operator text are appended after it.

    Args:
        extra: Operator guidance appended after the default prompt
        supplementary_profile: Key of SUPPLEMENTARY_PROFILES to append

    Returns:
        The system prompt
    """
    sections = [DEFAULT_SYSTEM_PROMPT]
    guidance = SUPPLEMENTARY_PROFILES.get(normalize_profile(supplementary_profile))
    if guidance:
        sections.append(f"{PROFILE_HEADING}\n{guidance}")
    if extra.strip():
        sections.append(f"{SYSTEM_GUIDANCE_HEADING}\n{extra.strip()}")
    return "\n\n".join(sections)


def compose_user_prompt(extra: str, context: dict[str, Any]) -> str:
    """Render the default user template plus any operator guidance, then fill in the context JSON."""
    template = DEFAULT_USER_TEMPLATE
    if extra.strip():
        template = "\n\n".join([template, USER_GUIDANCE_HEADING, extra.strip()])
    context_json = json.dumps(context, ensure_ascii=False, indent=2)
    return template.replace(CONTEXT_PLACEHOLDER, context_json, 1)
