"""Package for scoring, trending and saving financial news headlines."""

__all__ = ["catalog", "config", "controller", "dashboard", "models", "sentiment", "store"]
