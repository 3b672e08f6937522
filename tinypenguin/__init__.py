"""TinyPenguin: a local-LLM assistant for Linux system administration."""

__version__ = "0.1.0"
