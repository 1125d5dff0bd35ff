"""Subcommand groups for the imgopt CLI."""
