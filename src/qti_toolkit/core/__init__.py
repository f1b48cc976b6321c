"""Core models, vocabulary, value coercion and schema validation."""
