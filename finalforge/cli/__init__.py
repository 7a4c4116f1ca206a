"""Finalforge CLI — Typer-based command-line interface.

Provides the ``finalforge`` command with ``finalize release`` and
``blobs status``. All output uses Rich for formatted terminal display.
"""
