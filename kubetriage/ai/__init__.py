"""AI providers and the explanation stage."""
