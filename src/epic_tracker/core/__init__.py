"""Shared ports and application state."""
