"""Forwarding HTTP proxy that rewrites request and response headers from user-managed rules."""

__version__ = "0.1.0"
