"""Core infrastructure: configuration, store lifecycle, identity, and access control."""
