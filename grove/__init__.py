"""grove - isolated git worktree workspaces for concurrent agent work."""

__version__ = "0.1.0"
