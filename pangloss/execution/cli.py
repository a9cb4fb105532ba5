"""CLI entry point for parallel generation runs.

Usage:
  python -m pangloss generate --repo URL --feature NAME --prompt TEXT [--agents a,b]
                              [--config PATH] [--timeout MIN] [--merge-strategy KIND]
  python -m pangloss config [--output PATH]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

import structlog

from pangloss.execution.config import (
    DEFAULT_CONFIG_PATH,
    apply_env_overrides,
    available_provider_keys,
    load_config,
    write_default_config,
)
from pangloss.workflow.exceptions import PanglossError


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pangloss",
        description="Parallel LLM code generation - finding the best of all possible solutions",
    )
    subparsers = parser.add_subparsers(dest="command")
    default_config = os.environ.get("PANGLOSS_CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    gen = subparsers.add_parser("generate", help="Generate code using multiple LLM agents in parallel")
    gen.add_argument("-r", "--repo", required=True, help="Repository URL")
    gen.add_argument("-f", "--feature", required=True, help="Feature name to implement")
    gen.add_argument("-p", "--prompt", required=True, help="Code generation prompt")
    gen.add_argument(
        "-a", "--agents",
        default=os.environ.get("PANGLOSS_DEFAULT_AGENTS"),
        help="Comma-separated list of LLM agents (default: configured default_agents)",
    )
    gen.add_argument("-c", "--config", default=default_config, help="Path to config file")
    gen.add_argument(
        "--timeout",
        type=int,
        default=os.environ.get("PANGLOSS_TIMEOUT_MINUTES"),
        help="Timeout per agent in minutes",
    )
    gen.add_argument(
        "--merge-strategy",
        default=os.environ.get("PANGLOSS_MERGE_STRATEGY", "best_overall"),
        help="Merge strategy (best_overall|best_per_file|composite)",
    )
    gen.add_argument(
        "--compat-merge",
        action="store_true",
        help="Fall back to best_overall for every merge strategy",
    )
    gen.add_argument("--use-sdk", action="store_true", help="Run anthropic agents through the Claude Agent SDK")
    gen.add_argument("--mock", action="store_true", help="Use mock generators (skip real LLM calls)")
    gen.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    cfg = subparsers.add_parser("config", help="Generate default configuration file")
    cfg.add_argument("-o", "--output", default=default_config, help="Output path for config file")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "generate":
        configure_logging(args.verbose)
        asyncio.run(_generate_command(args))
    elif args.command == "config":
        path = write_default_config(args.output)
        print(f"Default config generated at {path}")


def _check_environment() -> None:
    if not os.environ.get("GITHUB_TOKEN"):
        print("Warning: GITHUB_TOKEN is not set; pushes to private repositories will fail", file=sys.stderr)
    providers = available_provider_keys()
    if not providers:
        print(
            "Warning: no LLM provider API keys found "
            "(set OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY or GOOGLE_API_KEY)",
            file=sys.stderr,
        )
    else:
        names = ", ".join(p.removesuffix("_API_KEY") for p in providers)
        print(f"Found API keys for: {names}")


async def _generate_command(args) -> None:
    from pangloss.execution.convenience import create_registry, create_test_registry
    from pangloss.execution.reporting import render_summary
    from pangloss.execution.runner import GenerateOptions, Pangloss

    print("Pangloss - Finding the best of all possible solutions...\n")
    if not args.mock:
        _check_environment()

    try:
        config = apply_env_overrides(load_config(args.config))
    except PanglossError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    agents = [a.strip() for a in args.agents.split(",") if a.strip()] if args.agents else None
    registry = create_test_registry() if args.mock else create_registry(use_sdk=args.use_sdk)
    runner = Pangloss(config=config, registry=registry, compat_fallback=args.compat_merge)

    def on_progress(event: str, payload: dict) -> None:
        if event == "run.started":
            print(f"  Spawning {len(payload['agents'])} agents in parallel...")
        elif event == "agents.completed":
            print(f"  Completed {payload['total']} agent runs ({len(payload['succeeded'])} succeeded)")
        elif event == "merge.completed":
            print(f"  Merged solutions from {', '.join(payload['contributors'])}")

    outcome = await runner.generate(
        GenerateOptions(
            repo_url=args.repo,
            feature_name=args.feature,
            request_prompt=args.prompt,
            agents=agents,
            timeout_minutes=args.timeout,
            merge_strategy=args.merge_strategy,
        ),
        on_progress=on_progress,
    )

    if outcome.agent_results:
        print()
        print(render_summary(outcome.agent_results))
        print()

    if not outcome.success:
        print(f"Generation failed: {outcome.error}", file=sys.stderr)
        sys.exit(1)

    print(f"Generation completed! Final branch: {outcome.final_branch}")
    if outcome.pull_request_url:
        print(f"Pull Request: {outcome.pull_request_url}")
