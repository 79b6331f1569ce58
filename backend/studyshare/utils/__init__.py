"""Small input-normalization helpers shared by schemas and services."""
