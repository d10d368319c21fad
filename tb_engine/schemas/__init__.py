"""Boundary data contracts."""
