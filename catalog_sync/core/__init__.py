"""Core exception types shared across the engine."""
