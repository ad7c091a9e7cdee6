"""Shared helpers: structured logging, run identifiers, date parsing."""
