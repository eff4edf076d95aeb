"""Command-line entry point for running devlink headless."""

from .main import main, parse_args

__all__ = ["main", "parse_args"]
