"""Streaming pipe coordination.

This module connects the engine's dump stream to the line normalizer and
guards writes to the final output against a vanished reader.
"""
