"""Annotation record schema, normalization, storage, export and migration."""
