"""Clients for the container runtime and dependent services."""
