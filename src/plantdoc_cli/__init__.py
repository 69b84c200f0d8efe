"""Command line interface for plantdoc."""
