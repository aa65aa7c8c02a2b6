"""CardGate: access-key gated content card generation service."""

__version__ = "1.0.0"
