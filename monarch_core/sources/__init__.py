"""Backend-specific fetch and transform modules."""
