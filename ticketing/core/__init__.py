"""Configuration and observability plumbing."""
