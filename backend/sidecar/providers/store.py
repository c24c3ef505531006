"""
Persistence contract for provider definitions

Storage itself lives with the host (editor settings, a config file, ...);
the registry only reads and writes through this interface.
"""

import copy
from abc import ABC, abstractmethod
from typing import List

from .models import ProviderDefinition


class ProviderStore(ABC):
    """Loads and saves the list of provider definitions"""

    @abstractmethod
    async def load(self) -> List[ProviderDefinition]:
        pass

    @abstractmethod
    async def save(self, definitions: List[ProviderDefinition]) -> None:
        pass


class InMemoryProviderStore(ProviderStore):
    """Store that keeps definitions for the lifetime of the process"""

    def __init__(self, definitions: List[ProviderDefinition] = None):
        self._definitions: List[ProviderDefinition] = copy.deepcopy(definitions or [])
        self.save_count = 0

    async def load(self) -> List[ProviderDefinition]:
        return copy.deepcopy(self._definitions)

    async def save(self, definitions: List[ProviderDefinition]) -> None:
        self._definitions = copy.deepcopy(definitions)
        self.save_count += 1
