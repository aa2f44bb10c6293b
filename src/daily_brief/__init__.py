"""Daily news brief pipeline: acquire, select, group and publish LLM-sourced stories."""

__all__ = ["config", "models", "pipeline"]
