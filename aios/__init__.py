"""AIOS assistant backend."""
