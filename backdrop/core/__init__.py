"""Core declarations shared by the store, factories and CLI."""
