"""Headless presentation helpers shared by the CLI and any front end."""
