"""Tests for the four evidence sources, using in-memory readers instead of Windows APIs."""

import os

from conftest import CountingQuery
from launchscript.inventory_cache import InventoryCache
from launchscript.models import UNKNOWN, ApplicationDescriptor, InventoryProduct, SourceKind
from launchscript.sources import (InventorySource, PortableSource, RegistrySource, WindowsStoreSource,
                                  matches_wildcard)


def _entry(name, version=None, publisher=None, location=None, date=None):
    return {"DisplayName": name, "DisplayVersion": version, "Publisher": publisher,
            "InstallLocation": location, "InstallDate": date, "UninstallString": None,
            "KeyPath": f"HKLM\\...\\{name}"}


UNINSTALL_ENTRIES = [
    _entry("Microsoft Visual Studio Code", "1.85.0", "Microsoft Corporation", r"C:\Program Files\Microsoft VS Code", "20240105"),
    _entry("Microsoft Visual Studio Code", "1.85.0", "Microsoft Corporation"),
    _entry("Microsoft Visual C++ 2015-2022 Redistributable (x64) - 14.38.33130", "14.38.33130.0"),
    _entry("Microsoft .NET Framework 4.8.1 SDK", "4.8.09037"),
    _entry("Security Update for Microsoft Office (KB5002467)", None),
    _entry("Git", "2.43.0", "The Git Development Community"),
    _entry("Some Tool"),
]


# --- Wildcards ---
def test_matches_wildcard_is_case_insensitive():
    assert matches_wildcard("Microsoft Visual Studio Code", "*visual studio code*")
    assert matches_wildcard("Git", "Git*")
    assert not matches_wildcard("GitHub Desktop", "Git")
    assert not matches_wildcard(None, "*")


# --- Registry ---
def test_registry_matches_and_normalizes():
    source = RegistrySource(reader=lambda: UNINSTALL_ENTRIES)
    records = source.scan("*Visual Studio Code*")
    assert len(records) == 1  # duplicate (name, version) collapsed
    rec = records[0]
    assert rec.display_name == "Microsoft Visual Studio Code"
    assert rec.version == "1.85.0"
    assert rec.publisher == "Microsoft Corporation"
    assert rec.install_location == r"C:\Program Files\Microsoft VS Code"
    assert rec.install_date == "20240105"
    assert rec.source is SourceKind.REGISTRY


def test_registry_missing_fields_use_sentinel_or_none():
    rec = RegistrySource(reader=lambda: UNINSTALL_ENTRIES).scan("Some Tool")[0]
    assert rec.version == UNKNOWN
    assert rec.publisher == UNKNOWN
    assert rec.install_location is None
    assert rec.install_date is None


def test_registry_excludes_updates_and_runtimes():
    source = RegistrySource(reader=lambda: UNINSTALL_ENTRIES)
    assert source.scan("*Visual C++*") == []
    assert source.scan("*.NET Framework*") == []
    assert source.scan("*Microsoft Office*") == []
    # The exclusion list only removes noise, not the application itself
    assert source.scan("Microsoft Visual*")[0].display_name == "Microsoft Visual Studio Code"


def test_registry_custom_exclusions():
    source = RegistrySource(reader=lambda: UNINSTALL_ENTRIES, exclusion_patterns=[r"^Git$"])
    assert source.scan("Git*") == []


def test_registry_walked_once_per_instance():
    reader = CountingQuery(UNINSTALL_ENTRIES)
    source = RegistrySource(reader=reader)
    assert source.scan("*Visual Studio Code*")
    assert source.scan("Git*")
    assert source.scan("*Nothing*") == []
    assert reader.calls == 1


def test_registry_reader_failure_is_empty_result():
    def broken():
        raise PermissionError("Access is denied")
    assert RegistrySource(reader=broken).scan("*") == []


# --- Windows Store ---
APPX_PACKAGES = [
    {"Name": "Microsoft.WindowsTerminal", "PackageFullName": "Microsoft.WindowsTerminal_1.18.3181.0_x64__8wekyb3d8bbwe",
     "Version": "1.18.3181.0", "Publisher": "CN=Microsoft Corporation, O=Microsoft Corporation, L=Redmond, S=Washington, C=US",
     "InstallLocation": r"C:\Program Files\WindowsApps\Microsoft.WindowsTerminal_1.18.3181.0_x64__8wekyb3d8bbwe"},
    {"Name": "SpotifyAB.SpotifyMusic", "PackageFullName": "SpotifyAB.SpotifyMusic_1.226.1034.0_x64__zpdnekdrzrea0",
     "Version": "1.226.1034.0", "Publisher": "CN=453637B3-4E12-4CDF-B0D3-2A3C863BF6EF", "InstallLocation": None},
]


def test_store_matches_package_name():
    source = WindowsStoreSource(lister=lambda: APPX_PACKAGES)
    records = source.scan("*WindowsTerminal*")
    assert len(records) == 1
    rec = records[0]
    assert rec.source is SourceKind.WINDOWS_STORE
    assert rec.version == "1.18.3181.0"
    assert rec.publisher == "Microsoft Corporation"
    assert rec.install_date is None


def test_store_lists_packages_once_per_instance():
    lister = CountingQuery(APPX_PACKAGES)
    source = WindowsStoreSource(lister=lister)
    source.scan("*Spotify*")
    source.scan("*Terminal*")
    source.scan("*Nothing*")
    assert lister.calls == 1


def test_store_failure_is_empty_result():
    source = WindowsStoreSource(lister=CountingQuery(error=OSError("powershell missing")))
    assert source.scan("*Terminal*") == []


# --- Portable ---
def _make_exe(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"MZ")
    return path


def test_portable_finds_executable_with_version(tmp_path):
    root = tmp_path / "Programs"
    _make_exe(root / "Microsoft VS Code" / "Code.exe")
    props = {"ProductVersionString": "1.85.0", "ProductName": "Visual Studio Code", "CompanyName": "Microsoft Corporation"}
    source = PortableSource(roots=[str(root)], properties_reader=lambda p: props)
    app = ApplicationDescriptor("VSCode", ("*VSCode*",), ("Microsoft VS Code",), ("code.exe",))

    records = source.scan(app)
    assert len(records) == 1
    rec = records[0]
    assert rec.source is SourceKind.PORTABLE
    assert rec.display_name == "Visual Studio Code"
    assert rec.version == "1.85.0"
    assert rec.publisher == "Microsoft Corporation"
    assert rec.install_location == str(root / "Microsoft VS Code")
    assert rec.install_date is not None and len(rec.install_date) == 8


def test_portable_unreadable_version_still_installed(tmp_path):
    _make_exe(tmp_path / "PuTTY" / "putty.exe")

    def unreadable(path):
        raise OSError("no version resource")

    source = PortableSource(roots=[str(tmp_path)], properties_reader=unreadable)
    rec = source.scan(ApplicationDescriptor("PuTTY", (), ("PuTTY",), ("putty.exe",)))[0]
    assert rec.version == UNKNOWN
    assert rec.display_name == "putty"


def test_portable_wildcard_executable_in_subfolder(tmp_path):
    _make_exe(tmp_path / "AngryIPScanner" / "bin" / "ipscan-win64-3.9.1.exe")
    source = PortableSource(roots=[str(tmp_path)], properties_reader=lambda p: None)
    app = ApplicationDescriptor("AngryIPScanner", (), ("AngryIPScanner",), ("ipscan*.exe",))
    assert source.scan(app)[0].display_name == "ipscan-win64-3.9.1"


def test_portable_caps_executables_scanned(tmp_path):
    app_dir = tmp_path / "Bundle"
    for i in range(10):
        _make_exe(app_dir / f"a{i:02d}.exe")
    _make_exe(app_dir / "zz_target.exe")
    app = ApplicationDescriptor("Bundle", (), ("Bundle",), ("zz_target.exe",))

    assert PortableSource(roots=[str(tmp_path)], max_executables=5, properties_reader=lambda p: None).scan(app) == []
    assert PortableSource(roots=[str(tmp_path)], max_executables=50, properties_reader=lambda p: None).scan(app)


def test_portable_skips_missing_roots_and_requires_hints(tmp_path):
    source = PortableSource(roots=[str(tmp_path / "missing"), "%LAUNCHSCRIPT_UNSET_VARIABLE%\\Programs"])
    assert source.install_roots() == []
    assert source.scan(ApplicationDescriptor("X", (), ("X",), ("x.exe",))) == []
    assert PortableSource(roots=[str(tmp_path)]).scan(ApplicationDescriptor("X", ("*X*",))) == []


def test_portable_expands_environment_variables(tmp_path, monkeypatch):
    monkeypatch.setenv("LAUNCHSCRIPT_TEST_ROOT", str(tmp_path))
    template = "%LAUNCHSCRIPT_TEST_ROOT%" if os.name == "nt" else "$LAUNCHSCRIPT_TEST_ROOT"
    assert PortableSource(roots=[template]).install_roots() == [tmp_path]


# --- Inventory ---
def test_inventory_substring_match_first_hit():
    cache = InventoryCache.preloaded([
        InventoryProduct(name="Zoom", version="5.16.0"),
        InventoryProduct(name="VSCodeUserSetup", version="1.80.2", vendor="Microsoft Corporation"),
        InventoryProduct(name="VSCode Insiders", version="1.86.0"),
    ])
    records = InventorySource(cache).scan(["Code", "VSCode"])
    assert len(records) == 1
    assert records[0].display_name == "VSCodeUserSetup"
    assert records[0].version == "1.80.2"
    assert records[0].source is SourceKind.INVENTORY


def test_inventory_fuzzy_match_when_no_substring():
    cache = InventoryCache.preloaded([InventoryProduct(name="Angry I.P. Scanner", version="3.9.1")])
    records = InventorySource(cache).scan(["AngryIP"])
    assert records[0].display_name == "Angry I.P. Scanner"


def test_inventory_substring_pass_wins_over_fuzzy_for_earlier_token():
    cache = InventoryCache.preloaded([
        InventoryProduct(name="G-i-m-p Helper", version="1"),
        InventoryProduct(name="GIMP 2.10.36", version="2.10.36"),
    ])
    # "Gimp" fuzzily matches the first record, but "GIMP" is a plain substring of the second
    assert InventorySource(cache).scan(["Gimp"])[0].display_name == "GIMP 2.10.36"


def test_inventory_no_tokens_does_not_build_cache():
    query = CountingQuery([InventoryProduct(name="Anything")])
    cache = InventoryCache(query=query)
    assert InventorySource(cache).scan([]) == []
    assert query.calls == 0


def test_inventory_empty_snapshot():
    assert InventorySource(InventoryCache(query=CountingQuery([]))).scan(["Code"]) == []
