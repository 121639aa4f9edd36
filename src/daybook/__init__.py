"""Daily journal conversations backed by a chat-completions API."""
