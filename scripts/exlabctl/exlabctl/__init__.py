"""ExLab admin CLI."""
