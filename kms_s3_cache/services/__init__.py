"""Application services built on the domain and infrastructure layers."""
