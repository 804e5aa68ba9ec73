"""HTTP client for the settlement API."""
