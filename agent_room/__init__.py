"""Agent Room: a group chat relay with a model participant."""
