"""trix CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

FALLBACK_VERSION = "0.0.1"


def get_version() -> str:
    import importlib.metadata

    try:
        return importlib.metadata.version("trix")
    except importlib.metadata.PackageNotFoundError:
        return FALLBACK_VERSION


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trix",
        description=(
            "Kubernetes security scanner. Investigate Trivy Operator findings "
            "with an LLM assistant."
        ),
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {get_version()}")
    parser.add_argument("--config", default=None, help="Path to custom configuration file (default: ~/.trix/config.json)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    def add_llm_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--provider", choices=("anthropic", "openai", "mistral"), default=None,
                       help="LLM provider (default: from config)")
        p.add_argument("--model", default=None, help="Model name (default: provider's default)")
        p.add_argument("--max-turns", type=int, default=None, help="Maximum tool-calling turns per question")
        p.add_argument("--timeout", type=float, default=None, help="Give up on a question after this many seconds")
        p.add_argument("--context", default=None, help="kubectl context to use")

    investigate = subparsers.add_parser("investigate", help="Interactive AI investigation of cluster findings")
    add_llm_options(investigate)

    ask = subparsers.add_parser("ask", help="Ask a single question and exit")
    ask.add_argument("question", nargs="+", help="The question to ask")
    add_llm_options(ask)

    subparsers.add_parser("version", help="Print the version number")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print(f"trix version {get_version()}")
        return 0
    if args.command not in ("investigate", "ask"):
        parser.print_help()
        return 1

    from rich.console import Console

    from trix.config import get_config
    from trix.llm.errors import ConfigurationError
    from trix.logger import setup_logging

    console = Console()
    try:
        cfg = get_config(args.config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    setup_logging(cfg.log_file, level=logging.DEBUG if args.debug else logging.INFO, stderr=args.debug)

    try:
        return asyncio.run(_run_agent(args, cfg, console))
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1


async def _run_agent(args, cfg, console) -> int:
    from trix.agent import AgentLoop, InteractiveSession, ToolRegistry
    from trix.agent.system import get_system_prompt
    from trix.agent.tool_defs import register_builtin_tools
    from trix.config import ProviderCredentials
    from trix.kubectl import Kubectl
    from trix.llm.factory import new_provider

    provider = new_provider(cfg, ProviderCredentials.from_env(), provider=args.provider, model=args.model)
    kubectl = Kubectl(cfg.kubectl_path, timeout=cfg.kubectl_timeout, context=args.context)
    if not kubectl.is_available():
        console.print(f"[yellow]Warning:[/yellow] '{cfg.kubectl_path}' not found; cluster tools will fail.")

    registry = ToolRegistry(max_output_chars=cfg.tool_output_max_chars)
    register_builtin_tools(registry, kubectl)

    async with provider:
        loop = AgentLoop(
            provider,
            registry,
            max_turns=args.max_turns or cfg.agent_max_turns,
            system_prompt=get_system_prompt(),
        )
        session = InteractiveSession(loop, console, timeout=args.timeout)

        if args.command == "ask":
            result = await session.ask(" ".join(args.question))
            if result is None:
                return 130
            session.show_result(result)
            return 1 if result.error else 0

        await session.run()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(0)
