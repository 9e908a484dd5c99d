"""Relational persistence: users and archived chat messages."""
