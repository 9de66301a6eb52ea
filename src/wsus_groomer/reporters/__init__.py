"""Run report output formats."""
