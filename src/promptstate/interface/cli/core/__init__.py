"""CLI core - group definition and entry point."""
