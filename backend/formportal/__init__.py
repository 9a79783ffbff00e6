"""Form submission portal backend."""
