"""External sqlite engine integration.

This module locates the sqlite executable and drives it as a subprocess
for dump and restore operations.
"""
