"""Workspace lifecycle: registry, merge lock, document sync, and the lifecycle manager."""
