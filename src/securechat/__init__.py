"""SecureChat: friendship-gated end-to-end encrypted messaging backend."""

__version__ = "1.0.0"
