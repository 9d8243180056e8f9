"""Command groups for the World Forge CLI."""
