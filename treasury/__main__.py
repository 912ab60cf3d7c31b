from treasury.cli.main import cli

cli()
