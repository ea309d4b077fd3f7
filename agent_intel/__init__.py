"""Pattern-driven routing intelligence and tiered working memory for agents."""

__version__ = "0.1.0"
