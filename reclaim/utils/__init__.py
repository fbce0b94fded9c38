"""Shared helpers for reclaim."""
