"""A2UI Bridge - tool-calling language models to the A2UI streaming protocol."""

__version__ = "0.1.0"
