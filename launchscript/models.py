"""Data structures shared by the detection sources, the pipeline and the report layer."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# Sentinel for descriptive fields of an installed application that the source could not fill.
UNKNOWN = "Unknown"


class SourceKind(Enum):
    """Evidence origin that produced a match."""
    REGISTRY = "Registry"
    WINDOWS_STORE = "WindowsStore"
    PORTABLE = "Portable"
    INVENTORY = "Inventory"

    def __str__(self) -> str:
        return self.value


def _clean(value: Any) -> Optional[str]:
    """Strips a raw field value; empty or missing values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# --- Configuration ---
@dataclass(frozen=True)
class ApplicationDescriptor:
    app_id: str
    search_patterns: Tuple[str, ...] = ()
    common_install_subpaths: Tuple[str, ...] = ()
    executable_names: Tuple[str, ...] = ()
    display_name: Optional[str] = None

    def __post_init__(self):
        # Accept lists from config files but store tuples so the descriptor stays immutable
        for name in ('search_patterns', 'common_install_subpaths', 'executable_names'):
            value = getattr(self, name)
            if isinstance(value, str):
                value = (value,)
            object.__setattr__(self, name, tuple(v for v in (value or ()) if v))

    @property
    def label(self) -> str:
        return self.display_name or self.app_id

    @property
    def has_portable_hints(self) -> bool:
        return bool(self.common_install_subpaths or self.executable_names)

    @property
    def is_searchable(self) -> bool:
        """False for a descriptor that no source could ever match."""
        return bool(self.search_patterns) or self.has_portable_hints


@dataclass(frozen=True)
class DetectionOptions:
    include_windows_store: bool = False
    include_portable: bool = False
    include_inventory: bool = True


# --- Raw evidence ---
@dataclass(frozen=True)
class InstallationRecord:
    display_name: str
    version: str
    publisher: str
    install_location: Optional[str]
    install_date: Optional[str]
    source: SourceKind

    @classmethod
    def normalized(cls, source: SourceKind, display_name: Any, version: Any = None, publisher: Any = None,
                   install_location: Any = None, install_date: Any = None) -> 'InstallationRecord':
        """Builds a record with the sentinel rules applied: names/version/publisher never None, location/date None when absent."""
        return cls(
            display_name=_clean(display_name) or UNKNOWN,
            version=_clean(version) or UNKNOWN,
            publisher=_clean(publisher) or UNKNOWN,
            install_location=_clean(install_location),
            install_date=_clean(install_date),
            source=source,
        )


@dataclass(frozen=True)
class InventoryProduct:
    name: str
    version: Optional[str] = None
    vendor: Optional[str] = None
    install_location: Optional[str] = None
    install_date_raw: Optional[str] = None


@dataclass(frozen=True)
class InventorySnapshot:
    records: Tuple[InventoryProduct, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.records

    def __len__(self) -> int:
        return len(self.records)


# Stored by the cache when the inventory query failed or returned nothing
InventorySnapshot.EMPTY = InventorySnapshot()


# --- Normalized result ---
@dataclass(frozen=True)
class InstallationStatus:
    is_installed: bool
    display_name: Optional[str] = None
    version: Optional[str] = None
    publisher: Optional[str] = None
    install_location: Optional[str] = None
    install_date: Optional[str] = None
    source: Optional[SourceKind] = None
    error: Optional[str] = None

    @classmethod
    def from_record(cls, record: InstallationRecord) -> 'InstallationStatus':
        return cls(
            is_installed=True,
            display_name=record.display_name,
            version=record.version,
            publisher=record.publisher,
            install_location=record.install_location,
            install_date=record.install_date,
            source=record.source,
        )

    @classmethod
    def not_installed(cls) -> 'InstallationStatus':
        return cls(is_installed=False)

    @classmethod
    def failed(cls, message: str) -> 'InstallationStatus':
        return cls(is_installed=False, error=message or "Unknown error")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_installed': self.is_installed,
            'display_name': self.display_name,
            'version': self.version,
            'publisher': self.publisher,
            'install_location': self.install_location,
            'install_date': self.install_date,
            'source': self.source.value if self.source else None,
            'error': self.error,
        }


@dataclass(frozen=True)
class DetectionResult:
    app_id: str
    status: InstallationStatus


@dataclass
class BatchReport:
    results: List[DetectionResult] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat(timespec='seconds'))

    # Counters are always derived from the statuses, never stored separately
    @property
    def total_apps(self) -> int:
        return len(self.results)

    @property
    def installed_count(self) -> int:
        return sum(1 for r in self.results if r.status.is_installed)

    @property
    def not_installed_count(self) -> int:
        return self.total_apps - self.installed_count

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if r.status.error)

    def get(self, app_id: str) -> Optional[InstallationStatus]:
        for result in self.results:
            if result.app_id == app_id:
                return result.status
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'total_apps': self.total_apps,
            'installed_count': self.installed_count,
            'not_installed_count': self.not_installed_count,
            'results': [dict(app_id=r.app_id, **r.status.to_dict()) for r in self.results],
        }
