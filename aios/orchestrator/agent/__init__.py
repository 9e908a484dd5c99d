"""Model gateway client, tool registry and system prompt."""
