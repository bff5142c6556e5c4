"""
Configuration loading and validation.

Provides strongly typed reader/writer defaults loaded from environment
variables with upfront validation.
"""
