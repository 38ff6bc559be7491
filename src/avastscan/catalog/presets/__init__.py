"""Bundled rule catalogs."""
