"""An RSS feed aggregator with users, follows, post collection and browsing."""

__version__ = "0.1.0"
__all__ = ["commands", "config", "database", "feed", "models"]