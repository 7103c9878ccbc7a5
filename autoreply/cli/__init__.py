"""Command-line tools for autoreply.

- ``python -m autoreply.cli`` -- ingest knowledge, search it, list
  resources, and track posts without running the web server.
"""
