"""Platform Compliance Engine: subreddit rule ingestion, post linting and preview gating."""

__version__ = "0.1.0"
