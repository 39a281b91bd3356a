"""Detection pipeline: fixed source precedence, first match wins, one normalized status per application."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Sequence

from launchscript.inventory_cache import InventoryCache
from launchscript.models import (ApplicationDescriptor, BatchReport, DetectionOptions, DetectionResult,
                                 InstallationRecord, InstallationStatus)
from launchscript.name_extractor import extract
from launchscript.sources import (EvidenceSource, InventorySource, PortableSource, RegistrySource,
                                  WindowsStoreSource)

logger = logging.getLogger(__name__)


class DetectionPipeline:
    """Answers "is this application installed, and at what version?".

    Precedence: Registry (per pattern) > Windows Store (per pattern) > Portable > Inventory.
    The inventory source always reads through `inventory_cache`; pass the same cache to
    several pipelines (or reuse one pipeline) to query the inventory only once.
    """

    def __init__(self, registry: Optional[EvidenceSource] = None,
                 windows_store: Optional[EvidenceSource] = None,
                 portable: Optional[EvidenceSource] = None,
                 inventory: Optional[EvidenceSource] = None,
                 inventory_cache: Optional[InventoryCache] = None,
                 extractor: Callable[[Sequence[str]], Sequence[str]] = extract):
        self.registry = registry or RegistrySource()
        self.windows_store = windows_store or WindowsStoreSource()
        self.portable = portable or PortableSource()
        if inventory is None:
            inventory = InventorySource(inventory_cache if inventory_cache is not None else InventoryCache())
        self.inventory = inventory
        self.extractor = extractor

    @classmethod
    def from_settings(cls, settings: dict, inventory_cache: Optional[InventoryCache] = None) -> 'DetectionPipeline':
        """Pipeline with every source configured from a settings dict (see settings.load_settings)."""
        return cls(
            registry=RegistrySource(exclusion_patterns=settings["registry_exclusion_patterns"]),
            windows_store=WindowsStoreSource(all_users=settings["store_all_users"],
                                             timeout=settings["powershell_timeout_seconds"]),
            portable=PortableSource(roots=settings["portable_install_roots"],
                                    max_executables=settings["portable_max_executables"]),
            inventory_cache=inventory_cache,
        )

    @staticmethod
    def _first_by_pattern(source: EvidenceSource, patterns: Sequence[str]) -> Optional[InstallationRecord]:
        for pattern in patterns:
            records = source.scan(pattern)
            if records:
                return records[0]
        return None

    def _find_record(self, app: ApplicationDescriptor, options: DetectionOptions) -> Optional[InstallationRecord]:
        record = self._first_by_pattern(self.registry, app.search_patterns)
        if record is not None:
            return record

        if options.include_windows_store:
            record = self._first_by_pattern(self.windows_store, app.search_patterns)
            if record is not None:
                return record

        if options.include_portable:
            records = self.portable.scan(app)
            if records:
                return records[0]

        if options.include_inventory:
            tokens = list(self.extractor(app.search_patterns))
            if not tokens:
                logger.debug(f"No name tokens for '{app.app_id}', inventory fallback skipped")
                return None
            records = self.inventory.scan(tokens)
            if records:
                return records[0]
        return None

    def detect(self, app: ApplicationDescriptor, options: Optional[DetectionOptions] = None) -> InstallationStatus:
        """Never raises: unexpected failures are reported through InstallationStatus.error."""
        options = options or DetectionOptions()
        try:
            if not app.is_searchable:
                logger.warning(f"Application '{app.app_id}' has no search patterns or install hints, "
                               f"reporting as not installed")
                return InstallationStatus.not_installed()

            record = self._find_record(app, options)
            if record is None:
                logger.info(f"Status check result for '{app.label}': Installed=False")
                return InstallationStatus.not_installed()

            logger.info(f"Status check result for '{app.label}': Installed=True, "
                        f"Version='{record.version}', Source={record.source.value}")
            return InstallationStatus.from_record(record)
        except Exception as e:
            app_id = getattr(app, 'app_id', app)
            logger.error(f"Error during installation status check for '{app_id}': {e}", exc_info=True)
            return InstallationStatus.failed(f"{type(e).__name__}: {e}")

    def detect_batch(self, apps: Iterable[ApplicationDescriptor], options: Optional[DetectionOptions] = None,
                     max_workers: int = 1) -> BatchReport:
        """Runs detect() once per application. Results keep the input order."""
        apps = list(apps)
        options = options or DetectionOptions()
        logger.info(f"Checking installation status for {len(apps)} application(s): "
                    f"{[getattr(a, 'app_id', a) for a in apps]}")

        if max_workers > 1 and len(apps) > 1:
            with ThreadPoolExecutor(max_workers=min(max_workers, len(apps))) as executor:
                statuses: List[InstallationStatus] = list(executor.map(lambda a: self.detect(a, options), apps))
        else:
            statuses = [self.detect(app, options) for app in apps]

        report = BatchReport(results=[DetectionResult(app_id=getattr(app, 'app_id', str(app)), status=status)
                                      for app, status in zip(apps, statuses)])
        logger.info(f"Detection completed: {report.installed_count}/{report.total_apps} apps installed")
        return report
