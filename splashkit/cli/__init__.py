"""Command line interface for splashkit."""
