"""Application utilities: configuration schema, paths and logging setup."""
