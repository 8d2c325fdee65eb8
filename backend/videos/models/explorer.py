from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ExplorerCollection:
    name: str
    method: str
    options: dict[str, Any] = field(default_factory=dict)
    icon: str | None = None


@dataclass(frozen=True)
class ExplorerSection:
    name: str
    collections: list[ExplorerCollection]


@dataclass(frozen=True)
class GatewayExplorer:
    sections: list[ExplorerSection]

    def collection_methods(self) -> set[str]:
        return {
            collection.method
            for section in self.sections
            for collection in section.collections
        }
