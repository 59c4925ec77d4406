"""Dump text filters.

This module turns raw engine dump lines into canonical, diff-stable text
and handles the optional hash signature line.
"""
