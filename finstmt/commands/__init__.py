"""Click command groups for finstmt."""
