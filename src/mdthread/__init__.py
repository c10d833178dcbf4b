"""mdthread: turn nested-heading markdown notes into chat-completion conversations."""

__version__ = "0.3.0"

__all__ = ["__version__"]
