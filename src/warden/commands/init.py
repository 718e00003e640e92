"""warden init: write a starter warden.yaml."""

from __future__ import annotations

from pathlib import Path

import click

from warden.config.parser import DEFAULT_CONFIG_NAME

TEMPLATE_YAML = """\
# warden.yaml: agent supervisor settings
#
# Every key is optional; the values below are the defaults.
version: "1"

# Database and launch-error files. $WARDEN_HOME overrides the default.
# data_dir: ~/.warden

claude:
  binary: claude
  extra_args: []

codex:
  binary: codex
  extra_args: []

transcript:
  buffer_size: 4096     # max bytes per transcript chunk
  channel_capacity: 16  # chunks buffered between capture and storage
  flush_after: 0.2      # seconds before a quiet stream's bytes are flushed
  echo: true            # mirror agent output on this terminal

sweep:
  interval: 5           # seconds between checks for dead agent processes
"""


@click.command()
@click.option("--force", is_flag=True, help=f"Overwrite an existing {DEFAULT_CONFIG_NAME}.")
def init(force: bool) -> None:
    """Create a warden.yaml in the current directory."""
    config_path = Path.cwd() / DEFAULT_CONFIG_NAME
    if config_path.exists() and not force:
        raise click.ClickException(
            f"{DEFAULT_CONFIG_NAME} already exists. Use --force to overwrite."
        )
    try:
        config_path.write_text(TEMPLATE_YAML, encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot write {DEFAULT_CONFIG_NAME}: {exc}") from exc
    click.echo(f"Created {DEFAULT_CONFIG_NAME}")
