"""ticklist: grouped, nested task lists stored as plain Markdown documents."""

__version__ = "0.1.0"
