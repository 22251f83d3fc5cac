"""Shared CLI option definitions so flags stay consistent across commands."""

import typer

OWNER_OPTION = typer.Option(..., "--owner", "-o", help="Repository owner (user or org)")

REPO_OPTION = typer.Option(..., "--repo", "-r", help="GitHub repository name")

INCLUDE_CLOSED_OPTION = typer.Option(
    None,
    "--include-closed/--open-only",
    help="Also mirror closed issues (defaults to the config file setting)",
)

RECHECK_OPTION = typer.Option(
    False,
    "--recheck",
    help="Re-analyze issues that were already analyzed",
    rich_help_panel="Processing Options",
)

DRY_RUN_OPTION = typer.Option(
    False,
    "--dry-run",
    "-d",
    help="Run the analysis without saving results",
    rich_help_panel="Processing Options",
)

APPLY_OPTION = typer.Option(
    False,
    "--apply",
    help="Push results to GitHub (labels, quality, missing-info only)",
    rich_help_panel="Processing Options",
)

FORCE_OPTION = typer.Option(
    False, "--force", "-f", help="Overwrite an existing store"
)

NO_DIGEST_OPTION = typer.Option(
    False, "--no-digest", help="Skip digest generation after fetching"
)

ORG_MEMBER_OPTION = typer.Option(
    None,
    "--org-member",
    "-m",
    help="Maintainer login, used by needs-response (can be used multiple times)",
)

CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="Path to a JSON config file (defaults to gh-triage.json)"
)
