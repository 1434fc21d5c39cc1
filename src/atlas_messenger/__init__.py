"""Atlas Messenger identity-provider authentication client."""

__version__ = "0.1.0"
