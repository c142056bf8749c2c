"""Diagnostic probes for the EVU funnel backend and its hosted Postgres."""

__version__ = "0.1.0"
