"""Adapters connecting the polling core to storage and remote services."""
