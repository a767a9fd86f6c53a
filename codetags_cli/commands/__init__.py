"""Subcommand implementations; each module exposes ``cmd_<name>(args)``."""
