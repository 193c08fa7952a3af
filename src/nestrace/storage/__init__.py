"""SQL persistence for captured events."""
