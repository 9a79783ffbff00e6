"""Service layer: validation, writing, reading and normalizing submissions."""
