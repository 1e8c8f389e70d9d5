"""Storage scope adapters."""

from scam_analyzer.adapters.storage.memory_store import MemoryStore
from scam_analyzer.adapters.storage.yaml_store import YamlKeyValueStore

__all__ = ["MemoryStore", "YamlKeyValueStore"]
