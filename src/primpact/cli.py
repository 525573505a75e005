"""Command-line interface for primpact."""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable
from pathlib import Path
from typing import TypeVar

import click
from rich.markup import escape

from primpact import __version__
from primpact.config import (
    IMPACT_MAP_FILE,
    STORE_DB_FILE,
    ProjectConfig,
    ResolvedConfig,
    find_project_root,
    get_primpact_dir,
    load_config,
    load_impact_map,
    resolve_impact_map,
    save_config,
    set_config_value,
)
from primpact.exceptions import PrimpactError
from primpact.log import configure_logging
from primpact.ui.console import Console

console = Console()

T = TypeVar("T")


def _get_project_root(path: str | None = None) -> Path:
    """Explicit path, else the nearest directory holding .primpact, else cwd."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {escape(path)}")
            sys.exit(1)
        return root
    return find_project_root() or Path.cwd()


def _run(coro: Awaitable[T]) -> T:
    """Run a coroutine, turning classified errors into a message and exit 1."""
    try:
        return asyncio.run(coro)
    except PrimpactError as e:
        where = f" during {e.step}" if e.step else ""
        console.error(f"{escape(str(e))} [dim]({e.kind.value}{where})[/dim]")
        if e.retryable:
            console.warning("This is temporary; try again later.")
        sys.exit(1)


def _make_source(repo: str | None, root: Path, config: ProjectConfig):
    from primpact.scm.github import GitHubPlatform
    from primpact.scm.local import LocalGitRepository

    if repo:
        try:
            return GitHubPlatform.from_full_name(
                repo,
                token=config.github.token,
                api_url=config.github.api_url,
                timeout=config.github.timeout,
            )
        except ValueError as e:
            console.error(escape(str(e)))
            sys.exit(1)
    return LocalGitRepository(root)


def _open_store(root: Path):
    from primpact.store import PrimpactStore

    return PrimpactStore(get_primpact_dir(root) / STORE_DB_FILE)


def _make_provider(config: ProjectConfig):
    from primpact.llm.factory import create_provider

    if not config.llm.api_key:
        console.error(
            f"No API key for provider '{config.llm.provider}'. "
            "Set ANTHROPIC_API_KEY / OPENAI_API_KEY or 'llm.api_key_env'."
        )
        sys.exit(1)
    try:
        return create_provider(config.llm)
    except PrimpactError as e:
        console.error(escape(str(e)))
        sys.exit(1)


def _check_target(pr: int | None, base: str | None, head: str | None) -> None:
    if pr is None and not (base and head):
        console.error("Specify either --pr or both --base and --head.")
        sys.exit(1)
    if pr is not None and (base or head):
        console.error("--pr cannot be combined with --base/--head.")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="primpact")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """primpact - PR impact analysis, AI test scenarios and code review."""
    configure_logging(verbose)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--provider", default=None, help="LLM provider (anthropic, claude, openai).")
@click.option("--model", default=None, help="LLM model name.")
def init(path: str | None, provider: str | None, model: str | None):
    """Create .primpact/config.json for a repository."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {escape(str(root))}")
        sys.exit(1)

    config = load_config(root)
    config.name = root.name
    config.root_path = str(root)
    if provider:
        config.llm.provider = provider
    if model:
        config.llm.model = model

    save_config(root, config)
    console.success(f"Configuration saved to {escape(str(get_primpact_dir(root)))}")


# =========================================================================
# Impact analysis (no AI)
# =========================================================================

@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--diff-file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Read the unified diff from a file ('-' is not supported).")
@click.option("--base", "-b", default=None, help="Base ref (default: working tree vs default branch).")
@click.option("--head", default=None, help="Head ref (default: HEAD).")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help=f"Impact map to use instead of {IMPACT_MAP_FILE}.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json", "markdown"]),
    default="text",
    help="Output format.",
)
def impact(
    path: str | None,
    diff_file: str | None,
    base: str | None,
    head: str | None,
    config_file: str | None,
    output_format: str,
):
    """Map a local diff onto features, services and pages.

    Examples:

        primpact impact --base main

        primpact impact --diff-file change.diff --format json
    """
    from primpact.analysis.diff_parser import parse_diff
    from primpact.analysis.impact import ImpactAnalyzer
    from primpact.report import build_report, render_report_markdown
    from primpact.scm.local import LocalGitRepository

    root = _get_project_root(path)
    source = LocalGitRepository(root)

    async def run() -> tuple[str, ResolvedConfig]:
        if config_file:
            resolved = ResolvedConfig(config=load_impact_map(Path(config_file)), source="file")
        else:
            resolved = await resolve_impact_map(source)
        if diff_file:
            return Path(diff_file).read_text(), resolved
        if base:
            return await source.compare_refs(base, head or "HEAD"), resolved
        return await source.get_working_diff(await source.get_default_branch()), resolved

    raw_diff, resolved = _run(run())
    files = parse_diff(raw_diff)
    result = ImpactAnalyzer(resolved.config).analyze(files)
    report = build_report(result, files, base=base, head=head or ("HEAD" if base else None))

    if output_format == "json":
        click.echo(report.model_dump_json(by_alias=True, indent=2))
    elif output_format == "markdown":
        click.echo(render_report_markdown(report))
    else:
        console.info(f"Impact map: {resolved.source}")
        console.show_impact(result, files)


# =========================================================================
# AI analysis
# =========================================================================

@main.command()
@click.option("--repo", "-r", default=None, help="GitHub repository (owner/name); local git when omitted.")
@click.option("--pr", type=int, default=None, help="Pull request number.")
@click.option("--base", "-b", default=None, help="Base branch for a branch comparison.")
@click.option("--head", default=None, help="Head branch for a branch comparison.")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--post", is_flag=True, help="Post (or update) the report as a PR comment.")
@click.option("--no-context", is_flag=True, help="Skip codebase indexing and context retrieval.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json", "markdown"]),
    default="text",
    help="Output format.",
)
def analyze(
    repo: str | None,
    pr: int | None,
    base: str | None,
    head: str | None,
    path: str | None,
    post: bool,
    no_context: bool,
    output_format: str,
):
    """Impact analysis plus AI-generated test scenarios."""
    from primpact.pipeline import AnalysisPipeline, post_report
    from primpact.report import render_report_markdown

    _check_target(pr, base, head)
    if post and pr is None:
        console.error("--post needs --pr.")
        sys.exit(1)

    root = _get_project_root(path)
    config = load_config(root)
    provider = _make_provider(config)
    source = _make_source(repo, root, config)
    store = _open_store(root)

    async def run():
        pipeline = AnalysisPipeline(
            source, provider, config, store=store, use_codebase_context=not no_context
        )
        try:
            if pr is not None:
                result = await pipeline.analyze_pull_request(pr)
                if post:
                    await post_report(source, pr, result.report)
            else:
                result = await pipeline.analyze_branches(base, head)
            return result
        finally:
            await source.aclose()

    with console.console.status("Analyzing..."):
        result = _run(run())
    store.close()

    report = result.report
    if output_format == "json":
        click.echo(report.model_dump_json(by_alias=True, indent=2))
    elif output_format == "markdown":
        click.echo(render_report_markdown(report))
    else:
        console.info(f"Impact map: {result.config_source}")
        console.show_report(report, result.files)
    if post:
        console.success(f"Posted report to #{pr}")


@main.command()
@click.option("--repo", "-r", default=None, help="GitHub repository (owner/name); local git when omitted.")
@click.option("--pr", type=int, default=None, help="Pull request number.")
@click.option("--base", "-b", default=None, help="Base branch for a branch comparison.")
@click.option("--head", default=None, help="Head branch for a branch comparison.")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--post", is_flag=True, help="Post the findings as a PR review.")
@click.option("--no-context", is_flag=True, help="Skip codebase indexing and context retrieval.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json", "markdown"]),
    default="text",
    help="Output format.",
)
def review(
    repo: str | None,
    pr: int | None,
    base: str | None,
    head: str | None,
    path: str | None,
    post: bool,
    no_context: bool,
    output_format: str,
):
    """AI code review of a pull request or branch comparison."""
    from primpact.pipeline import AnalysisPipeline, post_review

    _check_target(pr, base, head)
    if post and pr is None:
        console.error("--post needs --pr.")
        sys.exit(1)

    root = _get_project_root(path)
    config = load_config(root)
    provider = _make_provider(config)
    source = _make_source(repo, root, config)
    store = _open_store(root)

    async def run():
        pipeline = AnalysisPipeline(
            source, provider, config, store=store, use_codebase_context=not no_context
        )
        try:
            if pr is not None:
                result = await pipeline.review_pull_request(pr)
                if post:
                    await post_review(source, pr, result)
            else:
                result = await pipeline.review_branches(base, head)
            return result
        finally:
            await source.aclose()

    with console.console.status("Reviewing..."):
        result = _run(run())
    store.close()

    if output_format == "json":
        click.echo(json.dumps([i.model_dump(by_alias=True) for i in result.items], indent=2))
    elif output_format == "markdown":
        click.echo(result.summary)
    else:
        console.show_review(result.items)
    if post:
        console.success(f"Posted review to #{pr}")


# =========================================================================
# Codebase index
# =========================================================================

@main.command()
@click.option("--repo", "-r", default=None, help="GitHub repository (owner/name); local git when omitted.")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--refresh", is_flag=True, help="Drop the cached index and rebuild.")
def index(repo: str | None, path: str | None, refresh: bool):
    """Build or refresh the cached codebase index."""
    from primpact.codebase.indexer import get_or_build_index

    root = _get_project_root(path)
    config = load_config(root)
    source = _make_source(repo, root, config)
    store = _open_store(root)
    if refresh:
        store.delete_index("local", source.full_name)

    async def run():
        try:
            return await get_or_build_index(source, store, config=config.indexer)
        finally:
            await source.aclose()

    with console.console.status("Indexing..."):
        result = _run(run())
    store.close()
    console.show_index(result)


@main.command()
@click.argument("files", nargs=-1, required=True)
@click.option("--repo", "-r", default=None, help="GitHub repository (owner/name); local git when omitted.")
@click.option("--path", "-p", default=None, help="Path to the project root.")
def context(files: tuple[str, ...], repo: str | None, path: str | None):
    """Print the codebase context retrieved for FILES."""
    from primpact.codebase.indexer import get_or_build_index
    from primpact.codebase.retriever import retrieve_context

    root = _get_project_root(path)
    config = load_config(root)
    source = _make_source(repo, root, config)
    store = _open_store(root)

    async def run():
        try:
            return await get_or_build_index(source, store, config=config.indexer)
        finally:
            await source.aclose()

    result = _run(run())
    store.close()
    click.echo(retrieve_context(result, list(files), alias=config.indexer.path_alias))


@main.command()
@click.argument("question")
@click.option("--repo", "-r", default=None, help="GitHub repository (owner/name); local git when omitted.")
@click.option("--path", "-p", default=None, help="Path to the project root.")
def ask(question: str, repo: str | None, path: str | None):
    """Ask a question about the codebase (streamed answer)."""
    from primpact.chat import ChatMessage, stream_chat
    from primpact.codebase.indexer import get_or_build_index

    root = _get_project_root(path)
    config = load_config(root)
    provider = _make_provider(config)
    source = _make_source(repo, root, config)
    store = _open_store(root)

    async def run() -> None:
        try:
            codebase = await get_or_build_index(source, store, config=config.indexer)
        finally:
            await source.aclose()
        history = [ChatMessage(role="user", content=question)]
        async for chunk in stream_chat(provider, codebase, history):
            click.echo(chunk, nl=False)
        click.echo()

    _run(run())
    store.close()


# =========================================================================
# Impact map helpers
# =========================================================================

@main.command("detect-config")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--write", is_flag=True, help=f"Write {IMPACT_MAP_FILE} instead of printing it.")
def detect_config(path: str | None, write: bool):
    """Guess an impact map from the files in the working tree."""
    from primpact.analysis.detect import detect_config_from_tree
    from primpact.scm.local import list_working_tree

    root = _get_project_root(path)
    detected = detect_config_from_tree(list_working_tree(root))

    if write:
        target = root / IMPACT_MAP_FILE
        if target.exists():
            console.error(f"{IMPACT_MAP_FILE} already exists; not overwriting.")
            sys.exit(1)
        target.write_text(detected.to_json() + "\n")
        console.success(
            f"Wrote {IMPACT_MAP_FILE}: {len(detected.features)} features, "
            f"{len(detected.services)} services, {len(detected.pages)} pages"
        )
    else:
        click.echo(detected.to_json())


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage primpact configuration."""
    root = _get_project_root(path)
    config = load_config(root)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: primpact config get <key>")
            sys.exit(1)
        data = config.model_dump()
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {escape(key)}")
                sys.exit(1)
        console.console.print(f"{key} = {data}", markup=False)
    elif action == "set":
        if not key or value is None:
            console.error("Usage: primpact config set <key> <value>")
            sys.exit(1)
        try:
            # Try to parse as JSON for non-string values
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value

            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(escape(f"Set {key} = {parsed_value}"))
        except KeyError:
            console.error(f"Unknown config key: {escape(key)}")
            sys.exit(1)


if __name__ == "__main__":
    main()
