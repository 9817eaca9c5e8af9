from __future__ import annotations

from pathlib import Path

import pytest

from dwmctl.core.errors import ProfileValidationError
from dwmctl.core.profile_loader import load_profiles


def _write_profile(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


def test_load_packaged_profile() -> None:
    loaded = load_profiles()
    profile = loaded.profiles["dwm_v2"]
    assert profile.dfu.flash_address == 0x08000000
    assert profile.dfu.success_exit_codes == (0, 74)
    assert profile.firmware.seed_address == 0x08000000
    assert profile.firmware.max_image_bytes == 1024 * 1024
    assert profile.firmware.verify_checksums is False
    assert profile.calibration.degree == 3
    assert profile.calibration.scale.multipliers == (1000.0, 1_000_000.0, 1_000_000.0)
    assert profile.calibration.scale.divisor == 100.0
    assert loaded.warnings == ()


def test_user_profile_overrides_packaged(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "dwmctl" / "profiles" / "override.yaml",
        """
id: dwm_v2
name: Bench unit
dfu:
  tool_path: /opt/dfu-util/bin/dfu-util
firmware:
  seed_address: null
  verify_checksums: true
calibration:
  coefficient_scale:
    firmware_revision: "3"
    multipliers: [100, 10000, 10000]
    divisor: 1
""",
    )

    loaded = load_profiles()
    profile = loaded.profiles["dwm_v2"]
    assert profile.name == "Bench unit"
    assert profile.dfu.tool_path == "/opt/dfu-util/bin/dfu-util"
    assert profile.dfu.flash_address == 0x08000000
    assert profile.firmware.seed_address is None
    assert profile.firmware.verify_checksums is True
    assert profile.calibration.scale.firmware_revision == "3"
    assert any("overrides" in warning for warning in loaded.warnings)


def test_bad_address_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "data" / "dwmctl" / "profiles" / "bad.yaml",
        """
id: bad_address
name: Bad
dfu:
  flash_address: "flash-start"
""",
    )
    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_unknown_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "dwmctl" / "profiles" / "extra.yaml",
        """
id: extra
name: Extra
dfu:
  baud_rate: 115200
""",
    )
    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "dwmctl" / "profiles" / "dup.yaml",
        """
id: dup
name: Duplicate
calibration:
  degree: 3
  degree: 2
""",
    )
    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_non_boolean_checksum_flag_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "dwmctl" / "profiles" / "flag.yaml",
        """
id: flag
name: Flag
firmware:
  verify_checksums: maybe
""",
    )
    with pytest.raises(ProfileValidationError):
        load_profiles()
