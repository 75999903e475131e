"""Inbound adapters: HTTP API and command line."""
