"""Storage adapters for polled metric data."""

from pmpoller.adapters.storage.datastore import DataStore

__all__ = ["DataStore"]
