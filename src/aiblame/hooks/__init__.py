"""Hook entry points for coding assistants."""
