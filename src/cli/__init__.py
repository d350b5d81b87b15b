"""Command line interface for POC utilities."""
