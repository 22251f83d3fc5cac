"""Helpers shared by CLI commands."""

from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from ..ai.classifier import LLMClassifier
from ..config import Settings, load_settings
from ..errors import TriageError
from ..github_client.client import GitHubClient
from ..store.manager import IssueStore

console = Console()


def fail(message: str) -> NoReturn:
    console.print(f"[red]❌ {escape(message)}[/red]")
    raise typer.Exit(1)


def settings_or_exit(config_file: str | None) -> Settings:
    try:
        return load_settings(config_file)
    except TriageError as e:
        fail(str(e))


def open_store(settings: Settings) -> IssueStore:
    """Load the configured store or exit with a hint to run init."""
    try:
        store = IssueStore.load_or_none(Path(settings.store.path))
    except TriageError as e:
        fail(str(e))
    if store is None:
        fail("Store not found. Run 'gh-triage init' first.")
    return store


def make_client(settings: Settings, owner: str, repo: str) -> GitHubClient:
    try:
        return GitHubClient(owner, repo, settings.github.token)
    except ValueError as e:
        fail(str(e))


def make_classifier(settings: Settings) -> LLMClassifier:
    return LLMClassifier(settings.llm.model, retries=settings.llm.retries)
