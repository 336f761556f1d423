"""Language-model client, prompts, tools and turn orchestration."""

from .client import AIClient, ClientSettings

__all__ = ["AIClient", "ClientSettings"]
