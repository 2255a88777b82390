"""Command line interface for release-cut."""
