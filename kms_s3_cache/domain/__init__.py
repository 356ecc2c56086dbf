"""Domain value objects and repository interfaces."""
