"""Core runtime pieces: dispatcher, locks, config, and errors."""
