"""Infrastructure: persistence, cache, messaging, and security adapters."""
