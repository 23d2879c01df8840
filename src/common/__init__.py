"""Shared helpers: logging, git subprocess access and HTTP."""
