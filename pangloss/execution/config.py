"""Run configuration: LLM presets, default agents and limits."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

import structlog
import yaml

from pangloss.workflow.exceptions import ConfigError
from pangloss.workflow.models import LLMPreset

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = Path("pangloss.config.yaml")

PROVIDER_KEY_VARS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY")


def default_presets() -> dict[str, LLMPreset]:
    return {
        "codex-o3": LLMPreset(
            provider="openai",
            model="codex-cli",
            cli_model="o3",
            temperature=0.2,
            system_prompt=(
                "Use OpenAI Codex CLI with o3 model for advanced reasoning "
                "and precise code generation."
            ),
        ),
        "codex-gpt4": LLMPreset(
            provider="openai",
            model="codex-cli",
            cli_model="gpt-4.1",
            temperature=0.3,
            system_prompt=(
                "Use OpenAI Codex CLI with GPT-4.1 for well-tested code "
                "that follows best practices."
            ),
        ),
        "claude-sonnet": LLMPreset(
            provider="anthropic",
            model="claude-code-cli",
            cli_model="sonnet",
            temperature=0.3,
            system_prompt=(
                "Use Claude Code CLI with Sonnet for thoughtful code architecture "
                "and maintainable solutions."
            ),
        ),
        "claude-opus": LLMPreset(
            provider="anthropic",
            model="claude-code-cli",
            cli_model="opus",
            temperature=0.2,
            system_prompt=(
                "Use Claude Code CLI with Opus for complex reasoning "
                "and comprehensive code solutions."
            ),
        ),
        "claude-haiku": LLMPreset(
            provider="anthropic",
            model="claude-code-cli",
            cli_model="haiku",
            temperature=0.1,
            system_prompt="Use Claude Code CLI with Haiku for fast, efficient code generation.",
        ),
        "gemini-pro": LLMPreset(
            provider="google",
            model="gemini-cli",
            cli_model="gemini-2.5-pro",
            temperature=0.3,
            system_prompt=(
                "Use Gemini CLI with 2.5 Pro for versatile code generation "
                "with large context."
            ),
        ),
        "gemini-flash": LLMPreset(
            provider="google",
            model="gemini-cli",
            cli_model="gemini-2.0-flash",
            temperature=0.4,
            system_prompt=(
                "Use Gemini CLI with 2.0 Flash for fast code generation "
                "with built-in tool use."
            ),
        ),
    }


@dataclass
class PanglossConfig:
    """Configuration for a generation run."""

    llm_presets: dict[str, LLMPreset] = field(default_factory=default_presets)
    default_agents: list[str] = field(
        default_factory=lambda: ["codex-o3", "claude-sonnet", "gemini-pro"]
    )
    github_token: str | None = None
    timeout_minutes: int = 15
    max_parallel_agents: int = 5
    workspace_dir: Path = Path(".pangloss")
    keep_runs: int = 10

    def unknown_agents(self, agents: list[str]) -> list[str]:
        return [a for a in agents if a not in self.llm_presets]

    def to_dict(self) -> dict:
        data: dict = {
            "llm_presets": {name: p.to_dict() for name, p in self.llm_presets.items()},
            "default_agents": list(self.default_agents),
            "timeout_minutes": self.timeout_minutes,
            "max_parallel_agents": self.max_parallel_agents,
            "workspace_dir": str(self.workspace_dir),
            "keep_runs": self.keep_runs,
        }
        if self.github_token is not None:
            data["github_token"] = self.github_token
        return data

    @classmethod
    def from_dict(cls, data: dict) -> PanglossConfig:
        defaults = cls()
        presets = data.get("llm_presets")
        return cls(
            llm_presets=(
                {name: LLMPreset.from_dict(p) for name, p in presets.items()}
                if presets is not None
                else defaults.llm_presets
            ),
            default_agents=list(data.get("default_agents", defaults.default_agents)),
            github_token=data.get("github_token"),
            timeout_minutes=int(data.get("timeout_minutes", defaults.timeout_minutes)),
            max_parallel_agents=int(data.get("max_parallel_agents", defaults.max_parallel_agents)),
            workspace_dir=Path(data.get("workspace_dir", defaults.workspace_dir)),
            keep_runs=int(data.get("keep_runs", defaults.keep_runs)),
        )


def load_config(path: Path | str = DEFAULT_CONFIG_PATH) -> PanglossConfig:
    """Load configuration from a YAML (or JSON) file.

    A missing file yields the defaults. A file that exists but cannot be
    parsed, or whose content is not a valid configuration, raises ConfigError.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("config.not_found", path=str(path), using="defaults")
        return PanglossConfig()
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config {path}: {e}") from e
    if data is None:
        return PanglossConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(data).__name__}")
    try:
        config = PanglossConfig.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e
    logger.debug("config.loaded", path=str(path), presets=sorted(config.llm_presets))
    return config


def write_default_config(path: Path | str = DEFAULT_CONFIG_PATH) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(PanglossConfig().to_dict(), sort_keys=False))
    return path


def apply_env_overrides(
    config: PanglossConfig, environ: Mapping[str, str] | None = None,
) -> PanglossConfig:
    """Return a copy of ``config`` with environment settings layered on top."""
    env = os.environ if environ is None else environ
    changes: dict = {}
    if env.get("GITHUB_TOKEN"):
        changes["github_token"] = env["GITHUB_TOKEN"]
    if env.get("PANGLOSS_DEFAULT_AGENTS"):
        changes["default_agents"] = _split_agents(env["PANGLOSS_DEFAULT_AGENTS"])
    for var, name in (
        ("PANGLOSS_TIMEOUT_MINUTES", "timeout_minutes"),
        ("PANGLOSS_MAX_PARALLEL_AGENTS", "max_parallel_agents"),
    ):
        if env.get(var):
            try:
                changes[name] = int(env[var])
            except ValueError as e:
                raise ConfigError(f"{var} must be an integer, got {env[var]!r}") from e
    return replace(config, **changes) if changes else config


def available_provider_keys(environ: Mapping[str, str] | None = None) -> list[str]:
    """Names of the provider API key variables that are set."""
    env = os.environ if environ is None else environ
    return [var for var in PROVIDER_KEY_VARS if env.get(var)]


def _split_agents(value: str) -> list[str]:
    return [a.strip() for a in value.split(",") if a.strip()]
