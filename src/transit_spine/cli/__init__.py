"""
transit-spine CLI.

Entry point: ``transit-spine`` (installed via pyproject.toml ``[project.scripts]``).
"""

from transit_spine.cli.app import app

__all__ = ["app"]
