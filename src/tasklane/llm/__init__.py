"""OpenAI-compatible chat client used by the LLM planning service."""
