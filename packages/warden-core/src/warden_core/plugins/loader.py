"""Dynamic plugin discovery and loading via entry points."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import TYPE_CHECKING

from warden_core.interfaces.transport import InvalidationTransport

if TYPE_CHECKING:
    from warden_core.config.models import WardenConfig

logger = logging.getLogger(__name__)


class PluginNotFoundError(Exception):
    """Raised when a requested plugin cannot be found."""

    def __init__(self, plugin_type: str, name: str | None = None):
        self.plugin_type = plugin_type
        self.name = name
        msg = f"No {plugin_type} plugin found"
        if name:
            msg += f" with name '{name}'"
        super().__init__(msg)


class PluginLoader:
    """Discovers and loads plugins via entry points or config."""

    # Entry point group names
    GROUPS = {
        "transport": "warden.plugins.transport",
    }

    # Built-in fallbacks when no entry point is registered (lazy import paths)
    BUILTINS = {
        "transport": {
            "memory": ("warden_core.broadcast.memory", "InMemoryTransport"),
            "sqlite": ("warden_lite.transport.sqlite_transport", "SQLiteTransport"),
            "pubsub": ("warden_enterprise.plugins.cloud_transport.pubsub", "PubSubTransport"),
        },
    }

    def __init__(self, config: WardenConfig):
        self._config = config

    def discover(self) -> dict[str, list[str]]:
        """Scan entry_points for registered plugins. Returns {type: [name, ...]}."""
        result: dict[str, list[str]] = {}
        for plugin_type, group in self.GROUPS.items():
            eps = importlib.metadata.entry_points(group=group)
            result[plugin_type] = [ep.name for ep in eps]
        return result

    def _resolve_name(self, plugin_type: str, name: str | None) -> str:
        """Resolve plugin name: explicit arg > config."""
        if name is not None:
            return name
        if plugin_type == "transport":
            return self._config.broadcast.transport
        raise PluginNotFoundError(plugin_type)

    def _load_from_entry_point(self, plugin_type: str, name: str) -> object | None:
        """Try to load a specific named entry point."""
        group = self.GROUPS[plugin_type]
        eps = importlib.metadata.entry_points(group=group)
        for ep in eps:
            if ep.name == name:
                return ep.load()
        return None

    def _load_builtin(self, plugin_type: str, name: str) -> object | None:
        """Import the built-in plugin for this name, if its package is installed."""
        target = self.BUILTINS.get(plugin_type, {}).get(name)
        if target is None:
            return None
        module_path, class_name = target
        try:
            module = __import__(module_path, fromlist=[class_name])
            return getattr(module, class_name)
        except (ImportError, AttributeError):
            logger.debug("Built-in %s plugin %r is not importable", plugin_type, name, exc_info=True)
            return None

    def _load_plugin(self, plugin_type: str, name: str | None) -> object:
        """Fallback chain: entry_points > built-ins. An unresolvable name never falls back silently."""
        resolved = self._resolve_name(plugin_type, name)
        result = self._load_from_entry_point(plugin_type, resolved)
        if result is None:
            result = self._load_builtin(plugin_type, resolved)
        if result is None:
            raise PluginNotFoundError(plugin_type, resolved)
        return result

    def load_transport(self, name: str | None = None) -> type[InvalidationTransport]:
        return self._load_plugin("transport", name)

    def build_transport(self, name: str | None = None) -> InvalidationTransport:
        """Load the transport class and construct it from the broadcast config."""
        transport_cls = self.load_transport(name)
        transport = transport_cls.from_config(self._config.broadcast)
        logger.info("Using %s invalidation transport", type(transport).__name__)
        return transport
