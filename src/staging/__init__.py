"""Scoped staging of temporary database files.

This module owns the per-conversion database file the engine reads from
or restores into. Every staged file is removed when its conversion ends.
"""
