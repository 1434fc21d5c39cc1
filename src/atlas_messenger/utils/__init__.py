"""Shared utilities (environment configuration, logging helpers)."""
