"""FAQ knowledge base HTTP API."""
