"""Plugin registry -- the providers and agents loaded from config.yaml.

Three kinds of plugin are tracked: market data gateways, judgment (LLM)
providers and analysis agents. Each is checked against its protocol on
registration and looked up by its `name`.
"""

from __future__ import annotations

import logging
from typing import Any

from core.protocols import AIAgent, LLMProvider, MarketDataProvider

logger = logging.getLogger(__name__)

PROTOCOL_TYPES: dict[str, type] = {
    "market_data": MarketDataProvider,
    "llm": LLMProvider,
    "agent": AIAgent,
}


class PluginRegistry:
    """Name-keyed plugin tables, one per protocol kind.

    Usage:
        registry = PluginRegistry()
        registry.register("llm", openai_provider)
        registry.register("agent", SentimentAnalyst(llm=openai_provider, confidence=0.7))

        gateway = registry.get("market_data", "financial_datasets")
        agents = registry.pipeline()
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Any]] = {kind: {} for kind in PROTOCOL_TYPES}

    def _table(self, kind: str) -> dict[str, Any]:
        try:
            return self._tables[kind]
        except KeyError:
            raise KeyError(f"Unknown plugin kind: {kind}") from None

    def register(self, kind: str, plugin: Any) -> None:
        """Add `plugin` under `kind`, replacing any plugin with the same name."""
        if kind not in PROTOCOL_TYPES:
            raise ValueError(f"Unknown plugin kind '{kind}'; expected one of {sorted(PROTOCOL_TYPES)}")
        if not isinstance(plugin, PROTOCOL_TYPES[kind]):
            raise TypeError(f"{type(plugin).__name__} does not implement the {kind} protocol")

        table = self._tables[kind]
        if plugin.name in table:
            logger.warning("Replacing %s plugin '%s'", kind, plugin.name)
        table[plugin.name] = plugin
        logger.info("Registered %s plugin: %s", kind, plugin.name)

    def get(self, kind: str, name: str) -> Any:
        table = self._table(kind)
        if name not in table:
            raise KeyError(f"No {kind} plugin named '{name}' (loaded: {list(table)})")
        return table[name]

    def get_all(self, kind: str) -> list[Any]:
        """Registration order."""
        return list(self._table(kind).values())

    def has(self, kind: str, name: str) -> bool:
        return name in self._tables.get(kind, {})

    def pipeline(self) -> list[AIAgent]:
        """The registered agents, after checking every declared dependency is loaded."""
        agents = self._tables["agent"]
        for agent in agents.values():
            missing = [d for d in agent.depends_on if d not in agents]
            if missing:
                raise ValueError(f"Agent '{agent.name}' depends on unloaded stage(s): {missing}")
        return list(agents.values())

    async def close(self) -> None:
        """Close every provider that holds a connection pool."""
        for kind in ("llm", "market_data"):
            for plugin in self._tables[kind].values():
                if hasattr(plugin, "close"):
                    await plugin.close()

    def summary(self) -> dict[str, list[str]]:
        return {kind: list(table) for kind, table in self._tables.items() if table}
