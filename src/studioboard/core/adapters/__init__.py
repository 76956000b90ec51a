"""Persistence adapters for the board engine."""
