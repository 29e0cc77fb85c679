"""Shared helpers for perftrack."""
