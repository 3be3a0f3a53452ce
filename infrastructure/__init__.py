"""Persistence and external infrastructure for the edge node."""
