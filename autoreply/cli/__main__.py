"""Allow ``python -m autoreply.cli`` execution."""

from autoreply.cli.ingest import main

main()
