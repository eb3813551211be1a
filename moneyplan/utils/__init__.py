"""Shared helpers: money conversion and calendar arithmetic."""
