"""Payment provider integration (verification of completed payments)."""
