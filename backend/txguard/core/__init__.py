"""Core infrastructure: settings, logging, exceptions and retries."""
