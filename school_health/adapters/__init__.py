"""Adapters connecting the campaign core to external systems."""
