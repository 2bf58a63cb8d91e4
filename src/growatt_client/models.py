"""Data models for the Growatt web panel API."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional


@dataclass(frozen=True)
class Session:
    """Authenticated web panel session obtained from login."""
    session_id: str
    referer: str
    server_id: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def cookie_header(self) -> str:
        """Value for the Cookie header of authenticated requests."""
        cookies = [f"JSESSIONID={self.session_id}"]
        if self.server_id:
            cookies.append(f"SERVERID={self.server_id}")
        return "; ".join(cookies)

    def __repr__(self) -> str:
        return f"Session(user_id={self.user_id!r})"


@dataclass(frozen=True)
class DeviceDescriptor:
    """A device attached to a plant."""
    serial: Optional[str]
    device_type: Optional[str]
    plant_id: Optional[str]
    alias: Optional[str] = None
    datalogger_serial: Optional[str] = None
    model: Optional[str] = None
    status: Optional[str] = None
    last_update: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_mix(self) -> bool:
        return (self.device_type or "").lower() == "mix"

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "serial": self.serial,
            "device_type": self.device_type,
            "plant_id": self.plant_id,
            "alias": self.alias,
            "datalogger_serial": self.datalogger_serial,
            "model": self.model,
            "status": self.status,
            "last_update": self.last_update,
        }


@dataclass(frozen=True)
class PlantDeviceList:
    """Devices of one plant, as returned by a single page query."""
    plant_id: str
    devices: tuple[DeviceDescriptor, ...] = ()
    page: int = 1
    pages: int = 1

    def __iter__(self) -> Iterator[DeviceDescriptor]:
        return iter(self.devices)

    def __len__(self) -> int:
        return len(self.devices)

    @property
    def mix_devices(self) -> list[DeviceDescriptor]:
        """Devices reported with the ``mix`` device type."""
        return [d for d in self.devices if d.is_mix]


@dataclass(frozen=True)
class MixStatus:
    """
    Live telemetry of a mix (hybrid inverter/battery) device.

    Every reading is ``None`` when the panel did not report it, so a
    missing value is never confused with a reported zero. Readings are
    passed through in the units the panel reports them in.
    """
    queried_at: datetime
    status: Optional[int] = None
    soc: Optional[float] = None
    charge_power: Optional[float] = None
    discharge_power: Optional[float] = None
    pv_power: Optional[float] = None
    pv1_power: Optional[float] = None
    pv2_power: Optional[float] = None
    pv1_voltage: Optional[float] = None
    pv2_voltage: Optional[float] = None
    load_power: Optional[float] = None
    grid_import_power: Optional[float] = None
    grid_export_power: Optional[float] = None
    grid_voltage: Optional[float] = None
    grid_frequency: Optional[float] = None
    battery_voltage: Optional[float] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def battery_power(self) -> Optional[float]:
        """Net battery power, positive while charging."""
        if self.charge_power is None or self.discharge_power is None:
            return None
        return self.charge_power - self.discharge_power

    def to_dict(self) -> dict[str, Any]:
        return {
            "queried_at": self.queried_at.isoformat(),
            **{key: getattr(self, key) for key in MIX_STATUS_FIELDS},
        }


# Attribute name -> key in the getMIXStatusData "obj" payload
MIX_STATUS_FIELDS = {
    "status": "status",
    "soc": "SOC",
    "charge_power": "chargePower",
    "discharge_power": "pdisCharge1",
    "pv_power": "ppv",
    "pv1_power": "pPv1",
    "pv2_power": "pPv2",
    "pv1_voltage": "vPv1",
    "pv2_voltage": "vPv2",
    "load_power": "pLocalLoad",
    "grid_import_power": "pactouser",
    "grid_export_power": "pactogrid",
    "grid_voltage": "vAc1",
    "grid_frequency": "fAc",
    "battery_voltage": "vBat",
}

# Attribute name -> key in a getDevicesByPlantList "datas" entry
DEVICE_FIELDS = {
    "serial": "sn",
    "device_type": "deviceType",
    "plant_id": "plantId",
    "alias": "alias",
    "datalogger_serial": "datalogSn",
    "model": "deviceModel",
    "status": "status",
    "last_update": "lastUpdateTime",
}


def _optional_number(data: dict[str, Any], key: str) -> Optional[float]:
    """Read a numeric value that may be sent as a number or a string."""
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if "_" in value:
            raise ValueError(f"{key}: expected a number, got {value!r}")
        try:
            number = float(value)
        except ValueError:
            raise ValueError(f"{key}: expected a number, got {value!r}") from None
    else:
        raise ValueError(f"{key}: expected a number, got {type(value).__name__}")
    if not math.isfinite(number):
        raise ValueError(f"{key}: expected a finite number, got {value!r}")
    return number


def _optional_text(data: dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, (dict, list)):
        raise ValueError(f"{key}: expected a scalar, got {type(value).__name__}")
    return str(value)


def parse_device(entry: dict[str, Any]) -> DeviceDescriptor:
    """
    Build a DeviceDescriptor from one device entry.

    Raises:
        ValueError: If a field has an unexpected shape
    """
    values = {attr: _optional_text(entry, key) for attr, key in DEVICE_FIELDS.items()}
    return DeviceDescriptor(raw=dict(entry), **values)


def parse_mix_status(obj: dict[str, Any], queried_at: Optional[datetime] = None) -> MixStatus:
    """
    Build a MixStatus from the ``obj`` payload of a mix status response.

    Args:
        obj: The decoded payload
        queried_at: Timestamp of the query (defaults to now, UTC)

    Raises:
        ValueError: If a reported value is not numeric
    """
    values: dict[str, Any] = {
        attr: _optional_number(obj, key) for attr, key in MIX_STATUS_FIELDS.items()
    }
    if values["status"] is not None:
        if not values["status"].is_integer():
            raise ValueError(f"status: expected an integer, got {obj.get('status')!r}")
        values["status"] = int(values["status"])

    return MixStatus(
        queried_at=queried_at or datetime.now(timezone.utc),
        raw=dict(obj),
        **values,
    )
