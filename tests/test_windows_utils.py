"""Tests for the Windows access layer that run on any platform."""

import os
import time
from types import SimpleNamespace

import pytest

from launchscript import windows_utils
from launchscript.windows_utils import WindowsUtils


def test_parse_appx_json_single_object_and_array():
    single = '{"Name":"Microsoft.WindowsTerminal","Version":"1.18.3181.0"}'
    assert WindowsUtils.parse_appx_json(single) == [{"Name": "Microsoft.WindowsTerminal", "Version": "1.18.3181.0"}]

    several = '[{"Name":"A"}, 3, {"Name":"B"}]'
    assert [p["Name"] for p in WindowsUtils.parse_appx_json(several)] == ["A", "B"]
    assert WindowsUtils.parse_appx_json("  \n") == []


def test_parse_appx_json_rejects_garbage():
    with pytest.raises(ValueError):
        WindowsUtils.parse_appx_json("Get-AppxPackage : access denied")


def test_run_powershell_skipped_off_windows(monkeypatch):
    monkeypatch.setattr(windows_utils, "IS_WINDOWS", False)
    assert WindowsUtils.run_powershell("Get-AppxPackage") is None


def test_list_appx_packages_builds_script_and_parses(monkeypatch):
    seen = {}

    def fake_run(script, timeout=60):
        seen["script"] = script
        seen["timeout"] = timeout
        return '{"Name":"Microsoft.WindowsTerminal","PackageFullName":"Microsoft.WindowsTerminal_1.18_x64"}'

    monkeypatch.setattr(WindowsUtils, "run_powershell", staticmethod(fake_run))
    packages = WindowsUtils.list_appx_packages(all_users=True, timeout=15)
    assert packages[0]["Name"] == "Microsoft.WindowsTerminal"
    assert seen["script"].startswith("Get-AppxPackage -AllUsers |")
    assert seen["timeout"] == 15


@pytest.mark.parametrize("output", [None, "not json at all"])
def test_list_appx_packages_failures_give_empty_list(monkeypatch, output):
    monkeypatch.setattr(WindowsUtils, "run_powershell", staticmethod(lambda script, timeout=60: output))
    assert WindowsUtils.list_appx_packages() == []


def test_get_modified_date_format(tmp_path):
    exe = tmp_path / "tool.exe"
    exe.write_bytes(b"MZ")
    stamp = time.mktime((2023, 5, 17, 12, 0, 0, 0, 0, -1))
    os.utime(exe, (stamp, stamp))
    assert WindowsUtils.get_modified_date(str(exe)) == "20230517"
    assert WindowsUtils.get_modified_date(str(tmp_path / "missing.exe")) is None


def test_get_file_properties_without_pywin32(monkeypatch, tmp_path):
    exe = tmp_path / "tool.exe"
    exe.write_bytes(b"MZ")
    monkeypatch.setattr(windows_utils, "PYWIN32_AVAILABLE", False)
    assert WindowsUtils.get_file_properties(str(exe)) is None
    assert WindowsUtils.get_file_properties(str(tmp_path / "missing.exe")) is None


def test_inventory_query_without_pywin32(monkeypatch):
    monkeypatch.setattr(windows_utils, "PYWIN32_AVAILABLE", False)
    assert WindowsUtils.query_installed_products() == []


def test_registry_scan_without_winreg(monkeypatch):
    monkeypatch.setattr(windows_utils, "winreg", None)
    assert list(WindowsUtils.iter_uninstall_entries()) == []
    assert windows_utils._uninstall_roots() == []


def test_run_powershell_requests_utf8_output(monkeypatch):
    seen = {}

    def fake_run(cmd, **kwargs):
        seen["cmd"] = cmd
        seen["encoding"] = kwargs.get("encoding")
        return SimpleNamespace(returncode=0, stdout='{"Name":"Café.Notes"}', stderr="")

    monkeypatch.setattr(windows_utils, "IS_WINDOWS", True)
    monkeypatch.setattr(windows_utils.subprocess, "run", fake_run)
    assert WindowsUtils.run_powershell("Get-AppxPackage") == '{"Name":"Café.Notes"}'
    assert seen["cmd"][-1] == "[Console]::OutputEncoding = [Text.Encoding]::UTF8; Get-AppxPackage"
    assert seen["encoding"] == "utf-8"


def test_run_powershell_nonzero_exit_is_none(monkeypatch):
    monkeypatch.setattr(windows_utils, "IS_WINDOWS", True)
    monkeypatch.setattr(windows_utils.subprocess, "run",
                        lambda cmd, **kwargs: SimpleNamespace(returncode=1, stdout="", stderr="Access denied"))
    assert WindowsUtils.run_powershell("Get-AppxPackage -AllUsers") is None
