"""
Runner configuration.

Configs arrive as camelCase JSON (from the control API, a file or the
environment) and are normalized into frozen dataclasses. Secrets may be
given in a "securitySensitive" group or inside a base64 "encodedInput"
blob; explicit fields win over the blob.
"""

import base64
import binascii
import json
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from agentsns.exceptions import ConfigurationError
from agentsns.prompts import normalize_profile

DEFAULT_SNS_BASE_URL = "http://localhost:3000"
DEFAULT_INTERVAL_SEC = 60.0
DEFAULT_COMMENT_LIMIT = 50

MERGED_GROUPS = ("llm", "runtime", "execution", "prompts")


@dataclass(frozen=True)
class LlmSettings:
    api_key: str
    base_url: str = ""


@dataclass(frozen=True)
class RuntimeSettings:
    interval_sec: float = DEFAULT_INTERVAL_SEC
    comment_limit: int = DEFAULT_COMMENT_LIMIT
    max_tokens: int | None = None


@dataclass(frozen=True)
class ExecutionSettings:
    private_key: str = ""
    alchemy_api_key: str = ""
    rpc_url: str = ""

    @property
    def has_credentials(self) -> bool:
        return bool(self.private_key and (self.rpc_url or self.alchemy_api_key))


@dataclass(frozen=True)
class PromptSettings:
    system: str = ""
    user: str = ""
    supplementary_profile: str = ""


@dataclass(frozen=True)
class RunnerConfig:
    """Everything one runner engine needs. Replaced wholesale, never mutated."""

    sns_base_url: str
    runner_token: str
    agent_id: str
    llm: LlmSettings
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    prompts: PromptSettings = field(default_factory=PromptSettings)

    def to_dict(self) -> dict[str, Any]:
        """Input-shaped form; normalize_config(config.to_dict()) == config."""
        return {
            "snsBaseUrl": self.sns_base_url,
            "runnerToken": self.runner_token,
            "agentId": self.agent_id,
            "llm": {"apiKey": self.llm.api_key, "baseUrl": self.llm.base_url},
            "runtime": {
                "intervalSec": self.runtime.interval_sec,
                "commentLimit": self.runtime.comment_limit,
                "maxTokens": self.runtime.max_tokens,
            },
            "execution": {
                "privateKey": self.execution.private_key,
                "alchemyApiKey": self.execution.alchemy_api_key,
                "rpcUrl": self.execution.rpc_url,
            },
            "prompts": {
                "system": self.prompts.system,
                "user": self.prompts.user,
                "supplementaryProfile": self.prompts.supplementary_profile,
            },
        }

    @classmethod
    def from_env(cls) -> "RunnerConfig":
        """
        Create a config from environment variables.

        Environment variables:
            AGENTSNS_RUNNER_TOKEN: Runner credential (required)
            AGENTSNS_AGENT_ID: Agent id (required)
            AGENTSNS_LLM_API_KEY: LLM API key (required)
            AGENTSNS_BASE_URL, AGENTSNS_LLM_BASE_URL, AGENTSNS_INTERVAL_SEC,
            AGENTSNS_COMMENT_LIMIT, AGENTSNS_EXECUTION_PRIVATE_KEY,
            AGENTSNS_ALCHEMY_API_KEY, AGENTSNS_RPC_URL: optional

        Raises:
            ConfigurationError: If required variables are missing
        """
        env = os.environ
        return normalize_config({
            "snsBaseUrl": env.get("AGENTSNS_BASE_URL", ""),
            "runnerToken": env.get("AGENTSNS_RUNNER_TOKEN", ""),
            "agentId": env.get("AGENTSNS_AGENT_ID", ""),
            "llm": {
                "apiKey": env.get("AGENTSNS_LLM_API_KEY", ""),
                "baseUrl": env.get("AGENTSNS_LLM_BASE_URL", ""),
            },
            "runtime": {
                "intervalSec": env.get("AGENTSNS_INTERVAL_SEC"),
                "commentLimit": env.get("AGENTSNS_COMMENT_LIMIT"),
            },
            "execution": {
                "privateKey": env.get("AGENTSNS_EXECUTION_PRIVATE_KEY", ""),
                "alchemyApiKey": env.get("AGENTSNS_ALCHEMY_API_KEY", ""),
                "rpcUrl": env.get("AGENTSNS_RPC_URL", ""),
            },
        })


def _group(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _positive_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 and number != float("inf") else None


def _positive_int(value: Any) -> int | None:
    number = _positive_number(value)
    return int(number) if number is not None and number >= 1 else None


def _non_negative_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if math.isfinite(number) and number >= 0 else None


def decode_encoded_input(value: Any) -> dict[str, Any]:
    """
    Decode a base64 JSON blob carrying "securitySensitive" and "runner" groups.

    Raises:
        ConfigurationError: If the blob is not base64-encoded JSON object
    """
    text = _text(value)
    if not text:
        return {}
    try:
        raw = base64.b64decode(text + "=" * (-len(text) % 4), altchars=b"-_")
        decoded = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise ConfigurationError("encodedInput is not valid base64 JSON") from e
    if not isinstance(decoded, dict):
        raise ConfigurationError("encodedInput must decode to a JSON object")
    return decoded


def normalize_config(data: Any) -> RunnerConfig:
    """
    Validate a config mapping and fill defaults.

    Args:
        data: camelCase mapping, or an existing RunnerConfig

    Returns:
        RunnerConfig

    Raises:
        ConfigurationError: If runnerToken, agentId or the LLM API key is missing
    """
    if isinstance(data, RunnerConfig):
        return data
    if not isinstance(data, Mapping):
        raise ConfigurationError("Runner config must be an object")

    encoded = decode_encoded_input(data.get("encodedInput"))
    security = {**_group(encoded, "securitySensitive"), **_group(data, "securitySensitive")}
    encoded_runner = _group(encoded, "runner")
    llm = _group(data, "llm")
    runtime = _group(data, "runtime")
    execution = _group(data, "execution")
    prompts = _group(data, "prompts")

    runner_token = _text(data.get("runnerToken"))
    agent_id = _text(data.get("agentId"))
    api_key = _text(security.get("llmApiKey")) or _text(llm.get("apiKey"))

    if not runner_token:
        raise ConfigurationError("runnerToken is required")
    if not agent_id:
        raise ConfigurationError("agentId is required")
    if not api_key:
        raise ConfigurationError("LLM API key is required")

    def pick(*keys: str) -> Any:
        # The encoded runner group wins over explicit runtime values
        for key in keys:
            if encoded_runner.get(key) is not None:
                return encoded_runner[key]
        return runtime.get(keys[-1])

    interval = _positive_number(pick("intervalSec"))
    comment_limit = _non_negative_int(pick("commentContextLimit", "commentLimit"))
    profile = next(
        (
            value
            for value in (
                encoded_runner.get("supplementaryPromptProfile"),
                encoded_runner.get("analysisProfile"),
                runtime.get("supplementaryPromptProfile"),
                prompts.get("supplementaryPromptProfile"),
                prompts.get("supplementaryProfile"),
            )
            if value is not None
        ),
        None,
    )

    return RunnerConfig(
        sns_base_url=(_text(data.get("snsBaseUrl")) or DEFAULT_SNS_BASE_URL).rstrip("/"),
        runner_token=runner_token,
        agent_id=agent_id,
        llm=LlmSettings(api_key=api_key, base_url=_text(llm.get("baseUrl"))),
        runtime=RuntimeSettings(
            interval_sec=interval if interval is not None else DEFAULT_INTERVAL_SEC,
            comment_limit=comment_limit if comment_limit is not None else DEFAULT_COMMENT_LIMIT,
            max_tokens=_positive_int(pick("maxTokens")),
        ),
        execution=ExecutionSettings(
            private_key=_text(security.get("executionWalletPrivateKey")) or _text(execution.get("privateKey")),
            alchemy_api_key=_text(security.get("alchemyApiKey")) or _text(execution.get("alchemyApiKey")),
            rpc_url=_text(execution.get("rpcUrl")),
        ),
        prompts=PromptSettings(
            system=_text(prompts.get("system")),
            user=_text(prompts.get("user")),
            supplementary_profile=normalize_profile(profile),
        ),
    )


def merge_config(config: RunnerConfig, patch: Mapping[str, Any]) -> RunnerConfig:
    """
    Apply a partial update to a config without mutating it.

    Top-level keys are replaced; the llm, runtime, execution and prompts
    groups are merged key by key.

    Raises:
        ConfigurationError: If the merged config is invalid
    """
    if not isinstance(patch, Mapping):
        raise ConfigurationError("Config patch must be an object")
    merged = config.to_dict()
    for key, value in patch.items():
        if key in MERGED_GROUPS and isinstance(value, Mapping):
            merged[key] = {**merged.get(key, {}), **value}
        else:
            merged[key] = value
    return normalize_config(merged)


def redact_config(config: RunnerConfig | None) -> dict[str, Any] | None:
    """Status view of a config with every secret replaced by a presence flag."""
    if config is None:
        return None
    return {
        "snsBaseUrl": config.sns_base_url,
        "agentId": config.agent_id,
        "hasRunnerToken": bool(config.runner_token),
        "llm": {
            "baseUrl": config.llm.base_url or None,
            "hasApiKey": bool(config.llm.api_key),
        },
        "runtime": {
            "intervalSec": config.runtime.interval_sec,
            "commentLimit": config.runtime.comment_limit,
            "maxTokens": config.runtime.max_tokens,
        },
        "execution": {
            "hasPrivateKey": bool(config.execution.private_key),
            "hasAlchemyApiKey": bool(config.execution.alchemy_api_key),
            "hasRpcUrl": bool(config.execution.rpc_url),
        },
        "prompts": {
            "hasSystem": bool(config.prompts.system),
            "hasUser": bool(config.prompts.user),
            "supplementaryProfile": config.prompts.supplementary_profile or None,
        },
    }


def load_config_file(path: str | Path) -> RunnerConfig:
    """
    Read and normalize a JSON config file.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except ValueError as e:
        raise ConfigurationError(f"Config file {path} is not valid JSON") from e
    return normalize_config(data)
