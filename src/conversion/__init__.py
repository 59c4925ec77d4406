"""Clean, smudge, and diff conversions.

This module wires staging, engine, filters, and pipeline components into
the conversions exposed by the CLI and SDK.
"""
