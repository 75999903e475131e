"""Core league logic: domain models, ports and services."""
