"""Raw Windows access: uninstall registry keys, AppX packages, file version resources and WMI.

Every method degrades to an empty result off Windows (or without pywin32) so that the
detection sources above it can be exercised anywhere.
"""

import json
import logging
import os
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

try:
    import winreg
except ImportError:
    # Non-Windows system: registry scanning is disabled
    winreg = None

try:
    import pythoncom
    import win32api
    import win32com.client
    PYWIN32_AVAILABLE = True
except ImportError:
    PYWIN32_AVAILABLE = False

from launchscript.models import InventoryProduct

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"

UNINSTALL_KEY = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"
UNINSTALL_KEY_WOW64 = r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall"

# Values read from every uninstall subkey
UNINSTALL_VALUES = ("DisplayName", "DisplayVersion", "Publisher", "InstallLocation", "InstallDate", "UninstallString")

WMI_PRODUCT_QUERY = "SELECT Name, Version, Vendor, InstallLocation, InstallDate FROM Win32_Product"

# Windows PowerShell 5.1 writes redirected output in the OEM code page unless told otherwise
POWERSHELL_UTF8_PREFIX = "[Console]::OutputEncoding = [Text.Encoding]::UTF8; "


def _uninstall_roots() -> List[Tuple[str, int, str]]:
    """(label, hive, path) for machine-wide, machine-wide 32-bit and current-user uninstall keys."""
    if winreg is None:
        return []
    return [
        ("HKLM", winreg.HKEY_LOCAL_MACHINE, UNINSTALL_KEY),
        ("HKLM32", winreg.HKEY_LOCAL_MACHINE, UNINSTALL_KEY_WOW64),
        ("HKCU", winreg.HKEY_CURRENT_USER, UNINSTALL_KEY),
    ]


class WindowsUtils:
    """Encapsulates Windows-specific reads used by the evidence sources."""

    # --- Registry ---
    @staticmethod
    def _reg_read_string(key: Any, value_name: str) -> Optional[str]:
        """Reads a string value from an open key. Returns None if not found or not a string."""
        try:
            value, reg_type = winreg.QueryValueEx(key, value_name)
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug(f"OS Error reading reg value '{value_name}': {e}")
            return None
        if reg_type in (winreg.REG_SZ, winreg.REG_EXPAND_SZ):
            return str(value).strip()
        if reg_type == winreg.REG_DWORD:
            # Some installers write InstallDate / version parts as DWORD
            return str(value)
        return None

    @staticmethod
    def iter_uninstall_entries() -> Iterator[Dict[str, Optional[str]]]:
        """Yields one dict per uninstall subkey that has a DisplayName, across all uninstall roots."""
        if winreg is None:
            logger.debug("winreg not available, registry scan skipped.")
            return

        for label, hive, key_path in _uninstall_roots():
            try:
                base_key = winreg.OpenKey(hive, key_path, 0, winreg.KEY_READ | winreg.KEY_WOW64_64KEY)
            except FileNotFoundError:
                logger.debug(f"Uninstall registry path not found: {label}\\{key_path}")
                continue
            except OSError as e:
                logger.warning(f"Cannot open uninstall key {label}\\{key_path}: {e}")
                continue

            with base_key:
                subkey_index = 0
                while True:
                    try:
                        subkey_name = winreg.EnumKey(base_key, subkey_index)
                    except OSError:  # ERROR_NO_MORE_ITEMS
                        break
                    subkey_index += 1
                    try:
                        with winreg.OpenKey(base_key, subkey_name) as subkey:
                            entry = {name: WindowsUtils._reg_read_string(subkey, name) for name in UNINSTALL_VALUES}
                    except OSError as e:
                        logger.debug(f"Skipping unreadable subkey {label}\\{key_path}\\{subkey_name}: {e}")
                        continue
                    if not entry.get("DisplayName"):
                        continue
                    entry["KeyPath"] = f"{label}\\{key_path}\\{subkey_name}"
                    yield entry

    # --- Windows Store ---
    @staticmethod
    def run_powershell(script: str, timeout: int = 60) -> Optional[str]:
        """Runs a PowerShell snippet and returns stdout, or None on any failure."""
        if not IS_WINDOWS:
            logger.debug("PowerShell query skipped: not running on Windows.")
            return None
        cmd = ["powershell", "-NoLogo", "-NoProfile", "-NonInteractive", "-Command", POWERSHELL_UTF8_PREFIX + script]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, encoding='utf-8', errors='replace',
                                    timeout=timeout, creationflags=getattr(subprocess, 'CREATE_NO_WINDOW', 0))
        except subprocess.TimeoutExpired:
            logger.warning(f"PowerShell query timed out after {timeout}s")
            return None
        except FileNotFoundError:
            logger.warning("PowerShell executable not found")
            return None
        except OSError as e:
            logger.warning(f"PowerShell query failed to start: {e}")
            return None

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            logger.warning(f"PowerShell query exited with code {result.returncode}: {stderr}")
            return None
        return result.stdout or ""

    @staticmethod
    def parse_appx_json(output: str) -> List[Dict[str, Any]]:
        """ConvertTo-Json emits an object for one package and an array for several."""
        if not output or not output.strip():
            return []
        data = json.loads(output)
        if isinstance(data, dict):
            data = [data]
        return [item for item in data if isinstance(item, dict)]

    @staticmethod
    def list_appx_packages(all_users: bool = False, timeout: int = 60) -> List[Dict[str, Any]]:
        """Installed AppX/MSIX packages as dicts (Name, PackageFullName, Version, Publisher, InstallLocation)."""
        scope = " -AllUsers" if all_users else ""
        script = (
            f"Get-AppxPackage{scope} | "
            "Select-Object Name, PackageFullName, Version, Publisher, InstallLocation | "
            "ConvertTo-Json -Compress"
        )
        output = WindowsUtils.run_powershell(script, timeout=timeout)
        if output is None:
            return []
        try:
            packages = WindowsUtils.parse_appx_json(output)
        except ValueError as e:
            logger.warning(f"Could not parse Get-AppxPackage output: {e}")
            return []
        logger.debug(f"Listed {len(packages)} AppX packages (all_users={all_users})")
        return packages

    # --- Files ---
    @staticmethod
    def get_file_properties(file_path_str: str) -> Optional[Dict[str, str]]:
        """Reads version information properties from an EXE or DLL file. None when unreadable."""
        file_path = Path(file_path_str)
        if not file_path.is_file():
            logger.debug(f"Get props skipped: Not a file '{file_path_str}'")
            return None
        if not PYWIN32_AVAILABLE:
            logger.debug(f"pywin32 not available, cannot read version resource of {file_path.name}")
            return None

        properties: Dict[str, str] = {}
        try:
            fixed_info = win32api.GetFileVersionInfo(str(file_path), '\\')
            if fixed_info:
                ms = fixed_info['FileVersionMS']; ls = fixed_info['FileVersionLS']
                properties['FileVersion'] = f"{win32api.HIWORD(ms)}.{win32api.LOWORD(ms)}.{win32api.HIWORD(ls)}.{win32api.LOWORD(ls)}"
                ms = fixed_info['ProductVersionMS']; ls = fixed_info['ProductVersionLS']
                properties['ProductVersion'] = f"{win32api.HIWORD(ms)}.{win32api.LOWORD(ms)}.{win32api.HIWORD(ls)}.{win32api.LOWORD(ls)}"

            lang_codepages = win32api.GetFileVersionInfo(str(file_path), r'\VarFileInfo\Translation')
            lang_cp = f'{lang_codepages[0][0]:04x}{lang_codepages[0][1]:04x}' if lang_codepages else '040904b0'
            string_keys = {'CompanyName': 'CompanyName', 'ProductName': 'ProductName',
                           'FileDescription': 'FileDescription', 'ProductVersion': 'ProductVersionString'}
            for key, prop_name in string_keys.items():
                try:
                    value = win32api.GetFileVersionInfo(str(file_path), f'\\StringFileInfo\\{lang_cp}\\{key}')
                except Exception:
                    value = None
                if value and value.strip():
                    properties[prop_name] = value.strip()
            return properties
        except Exception as e:
            logger.debug(f"Failed getting properties for {file_path.name}: {type(e).__name__} - {e}")
            return None

    @staticmethod
    def get_modified_date(file_path_str: str) -> Optional[str]:
        """Modification date as YYYYMMDD, the same shape as the registry InstallDate value."""
        try:
            return datetime.fromtimestamp(os.path.getmtime(file_path_str)).strftime("%Y%m%d")
        except OSError as e:
            logger.debug(f"Cannot stat {file_path_str}: {e}")
            return None

    # --- WMI inventory ---
    @staticmethod
    def query_installed_products() -> List[InventoryProduct]:
        """Lists products registered through Windows Installer (WMI Win32_Product).

        Slow (several seconds) and limited to MSI-installed software: an application
        missing here may still be installed by other means.
        """
        if not PYWIN32_AVAILABLE:
            logger.debug("pywin32 not available, WMI inventory query skipped.")
            return []

        products: List[InventoryProduct] = []
        pythoncom.CoInitialize()
        try:
            wmi = win32com.client.GetObject(r"winmgmts:{impersonationLevel=impersonate}!\\.\root\cimv2")
            for item in wmi.ExecQuery(WMI_PRODUCT_QUERY):
                name = item.Name
                if not name:
                    continue
                products.append(InventoryProduct(
                    name=str(name).strip(),
                    version=item.Version,
                    vendor=item.Vendor,
                    install_location=item.InstallLocation,
                    install_date_raw=item.InstallDate,
                ))
        except pythoncom.com_error as e:
            logger.warning(f"COM Error running WMI inventory query: {e}")
            return []
        finally:
            pythoncom.CoUninitialize()

        logger.info(f"WMI inventory query returned {len(products)} products")
        return products
