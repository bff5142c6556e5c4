"""
Generic utility functions shared across modules.

Includes column-name normalization and logging setup.
"""
