"""Adapters connecting the core to storage, HTTP and the command line."""
