"""Generation backend providers."""
