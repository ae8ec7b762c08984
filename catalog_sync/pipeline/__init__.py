"""Synchronization pipeline building blocks."""
