"""Adapters for the cache store and the AWS collaborators."""
