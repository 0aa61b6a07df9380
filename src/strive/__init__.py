"""Strive API: gamified career and learning platform backend."""
