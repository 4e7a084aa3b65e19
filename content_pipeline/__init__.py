"""Outline-to-lesson content pipeline: stages, state machines and workflows."""
