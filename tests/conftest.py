"""Shared test doubles for detection tests."""

from typing import Any, Dict, List, Optional

import pytest

from launchscript.inventory_cache import InventoryCache
from launchscript.models import ApplicationDescriptor, InstallationRecord, InventoryProduct, SourceKind
from launchscript.sources import EvidenceSource


class StubSource(EvidenceSource):
    """Returns canned records per query and records every call."""

    def __init__(self, kind: SourceKind, hits: Optional[Dict[Any, List[InstallationRecord]]] = None,
                 error: Optional[Exception] = None):
        self.kind = kind
        self.hits = hits or {}
        self.error = error
        self.calls: List[Any] = []

    def _scan(self, query):
        self.calls.append(query)
        if self.error is not None:
            raise self.error
        key = tuple(query) if isinstance(query, list) else query
        return list(self.hits.get(key, []))


class CountingQuery:
    """Inventory query double with a call counter."""

    def __init__(self, products=None, error: Optional[Exception] = None):
        self.products = products or []
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.products)


def record(source: SourceKind, display_name: str, version: str = "1.0", **kwargs) -> InstallationRecord:
    return InstallationRecord.normalized(source, display_name=display_name, version=version, **kwargs)


@pytest.fixture
def vscode() -> ApplicationDescriptor:
    return ApplicationDescriptor(
        app_id="VSCode",
        search_patterns=("*Visual Studio Code*", "*VSCode*"),
        common_install_subpaths=("Microsoft VS Code",),
        executable_names=("Code.exe",),
    )


@pytest.fixture
def empty_sources():
    """Registry, store and portable sources that never find anything."""
    return {
        "registry": StubSource(SourceKind.REGISTRY),
        "windows_store": StubSource(SourceKind.WINDOWS_STORE),
        "portable": StubSource(SourceKind.PORTABLE),
    }


@pytest.fixture
def vscode_inventory() -> CountingQuery:
    return CountingQuery([
        InventoryProduct(name="Zoom", version="5.16.0", vendor="Zoom Video Communications, Inc."),
        InventoryProduct(name="VSCodeUserSetup", version="1.80.2", vendor="Microsoft Corporation"),
    ])


@pytest.fixture
def inventory_cache(vscode_inventory) -> InventoryCache:
    return InventoryCache(query=vscode_inventory)
