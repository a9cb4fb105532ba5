"""Adapters for the external collaborators: processes, git, workspaces, pull requests."""
