"""Metadata decoding, merging and resolution services."""
