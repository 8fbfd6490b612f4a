"""git-super: OAuth/SSO authentication for AI commit-message providers."""

__version__ = "0.3.0"
