"""Settings, exceptions and remote call instrumentation shared by every layer."""
