"""World Forge CLI - deploy and manage World Engine game projects."""

__version__ = "0.1.0"
