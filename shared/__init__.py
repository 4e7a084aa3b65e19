"""Shared infrastructure: models, repositories, LLM access, prompts and utilities."""
