"""Conversation orchestration: prompt preparation, model calls, event translation."""
