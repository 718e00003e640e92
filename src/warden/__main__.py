from warden.cli import cli

cli()
