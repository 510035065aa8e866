"""tether init — scaffold tether.yaml and .env.example."""

from __future__ import annotations

from pathlib import Path

import click

from tether.config.parser import DEFAULT_CONFIG_NAME

ENV_EXAMPLE_FILENAME = ".env.example"

TEMPLATE_YAML = """\
# tether configuration
# Every key is optional; environment variables fill anything left unset.

# Path to the claude binary (default: auto-detected)
# cli_path: /usr/local/bin/claude

# Default model for every query
# model: claude-sonnet-4-5

# Permission mode: default, acceptEdits, dontAsk, bypassPermissions, plan
permission_mode: default

# Working directory for the agent (default: current directory)
# cwd: .

# Tools the agent may use without asking
allowed_tools:
  - Read
  - Grep
  - Glob

# Cap on agent turns per query
# max_turns: 10

# Kill the CLI if a query runs longer than this many seconds
# process_timeout: 600

# Route model calls through a cloud provider instead of the Anthropic API
# providers:
#   bedrock: false
#   vertex: false
#   foundry: false
"""

TEMPLATE_ENV_EXAMPLE = """\
# Copy this file to .env and fill in your key.
# tether loads .env from the directory holding tether.yaml.

ANTHROPIC_API_KEY=

# Optional overrides (used when tether.yaml leaves the key unset)
# CLAUDE_AGENT_CLI_PATH=
# CLAUDE_AGENT_MODEL=
# CLAUDE_AGENT_PERMISSION_MODE=
# CLAUDE_AGENT_CWD=
# CLAUDE_AGENT_MAX_TURNS=
# CLAUDE_AGENT_TIMEOUT=
# CLAUDE_CODE_USE_BEDROCK=1
# CLAUDE_CODE_USE_VERTEX=1
# CLAUDE_CODE_USE_FOUNDRY=1
"""


@click.command()
@click.option(
    "--force",
    is_flag=True,
    help=f"Overwrite existing {DEFAULT_CONFIG_NAME} if it exists.",
)
def init(force: bool) -> None:
    """Scaffold tether configuration in the current directory."""
    cwd = Path.cwd()
    config_path = cwd / DEFAULT_CONFIG_NAME
    env_example_path = cwd / ENV_EXAMPLE_FILENAME

    if config_path.exists() and not force:
        raise click.ClickException(
            f"{DEFAULT_CONFIG_NAME} already exists. Use --force to overwrite."
        )

    try:
        config_path.write_text(TEMPLATE_YAML, encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(
            f"Cannot write {DEFAULT_CONFIG_NAME}: {exc}"
        ) from exc
    click.echo(f"  Created {DEFAULT_CONFIG_NAME}")

    if not env_example_path.exists() or force:
        try:
            env_example_path.write_text(TEMPLATE_ENV_EXAMPLE, encoding="utf-8")
        except OSError as exc:
            raise click.ClickException(
                f"Cannot write {ENV_EXAMPLE_FILENAME}: {exc}"
            ) from exc
        click.echo(f"  Created {ENV_EXAMPLE_FILENAME}")
    else:
        click.echo(f"  Skipped {ENV_EXAMPLE_FILENAME} (already exists)")

    click.echo()
    click.echo("Next steps:")
    click.echo("  1. Copy .env.example to .env and add your API key")
    click.echo(f"  2. Adjust defaults in {DEFAULT_CONFIG_NAME}")
    click.echo('  3. Run `tether query "hello"`')
