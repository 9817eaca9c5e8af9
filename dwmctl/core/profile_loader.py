"""Profile loading and validation for YAML-based dwmctl device profiles."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from dwmctl.core.errors import ProfileLoadError, ProfileValidationError
from dwmctl.core.model import (
    CalibrationSettings,
    CoefficientScale,
    DeviceProfile,
    DfuSettings,
    FirmwareSettings,
)

DEFAULT_PROFILE_ID = "dwm_v2"

_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-f]{1,8}$")
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ProfileValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedProfiles:
    profiles: dict[str, DeviceProfile]
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("dwmctl.schemas").joinpath("profile.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _profile_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "dwmctl/profiles", xdg_data / "dwmctl/profiles"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileLoadError(f"Could not read profile file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ProfileValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ProfileValidationError(f"Profile file {path} must contain a mapping at root")
    return loaded


def _normalize_address(value: str | None, *, context: str) -> int | None:
    if value is None:
        return None
    normalized = str(value).strip().lower()
    if not _ADDRESS_RE.match(normalized):
        raise ProfileValidationError(f"{context} must be a 32-bit hex address such as 0x08000000")
    return int(normalized, 16)


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ProfileValidationError(f"{context} must be boolean true/false")


def _build_profile(doc: dict[str, Any], source: Path | Traversable) -> DeviceProfile:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProfileValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    profile_id = doc["id"]
    dfu_doc = doc.get("dfu", {})
    fw_doc = doc.get("firmware", {})
    cal_doc = doc.get("calibration", {})

    dfu_defaults = DfuSettings()
    dfu = DfuSettings(
        tool_path=dfu_doc.get("tool_path"),
        alt_setting=int(dfu_doc.get("alt_setting", dfu_defaults.alt_setting)),
        interface=int(dfu_doc.get("interface", dfu_defaults.interface)),
        flash_address=_normalize_address(
            dfu_doc.get("flash_address", hex(dfu_defaults.flash_address)),
            context=f"{profile_id}.dfu.flash_address",
        ),
        success_exit_codes=tuple(
            int(code) for code in dfu_doc.get("success_exit_codes", dfu_defaults.success_exit_codes)
        ),
    )

    fw_defaults = FirmwareSettings()
    firmware = FirmwareSettings(
        seed_address=_normalize_address(
            fw_doc.get("seed_address", hex(fw_defaults.seed_address)),
            context=f"{profile_id}.firmware.seed_address",
        ),
        max_image_bytes=int(fw_doc.get("max_image_bytes", fw_defaults.max_image_bytes)),
        fill_byte=int(fw_doc.get("fill_byte", fw_defaults.fill_byte)),
        verify_checksums=_normalize_bool(
            fw_doc.get("verify_checksums", fw_defaults.verify_checksums),
            context=f"{profile_id}.firmware.verify_checksums",
        ),
    )

    cal_defaults = CalibrationSettings()
    scale = cal_defaults.scale
    if "coefficient_scale" in cal_doc:
        scale_doc = cal_doc["coefficient_scale"]
        scale = CoefficientScale(
            multipliers=tuple(float(m) for m in scale_doc["multipliers"]),
            divisor=float(scale_doc["divisor"]),
            firmware_revision=str(scale_doc.get("firmware_revision", scale.firmware_revision)),
        )
    calibration = CalibrationSettings(
        degree=int(cal_doc.get("degree", cal_defaults.degree)),
        min_r_squared=float(cal_doc.get("min_r_squared", cal_defaults.min_r_squared)),
        scale=scale,
    )

    return DeviceProfile(
        id=profile_id,
        name=doc["name"],
        dfu=dfu,
        firmware=firmware,
        calibration=calibration,
    )


def _iter_packaged_profile_paths() -> list[Traversable]:
    profile_root = resources.files("dwmctl.profiles")
    return [item for item in profile_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_profile_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _profile_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_profiles() -> LoadedProfiles:
    profiles: dict[str, DeviceProfile] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_profile_paths(), key=lambda p: p.name):
        doc = _read_yaml(path)
        profile = _build_profile(doc, path)
        profiles[profile.id] = profile

    for path in _iter_user_profile_paths():
        doc = _read_yaml(path)
        profile = _build_profile(doc, path)
        if profile.id in profiles:
            warning = f"User profile '{profile.id}' overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[profile.id] = profile

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))
