"""
Growatt Client - Async Python client for the Growatt solar monitoring panel.

Covers the web panel endpoints used to follow a hybrid ("mix") system:
- Session login
- Devices attached to a plant
- Live mix inverter/battery status (state of charge, PV, load, grid)

Example:
    >>> from growatt_client import GrowattClient
    >>>
    >>> async with GrowattClient() as client:
    ...     await client.login("user", "secret")
    ...     devices = await client.device_list_by_plant("123456")
    ...
    ...     status = await client.mix_system_status("MIX0000001", "123456")
    ...     if status.soc is not None:
    ...         print(f"Battery: {status.soc:.0f}%")
"""

__version__ = "0.1.0"

from .client import (
    GrowattClient,
    GrowattError,
    AuthenticationError,
    NotAuthenticated,
    TransportError,
    DecodeError,
    RemoteError,
    GrowattParameterError,
)
from .models import (
    Session,
    DeviceDescriptor,
    PlantDeviceList,
    MixStatus,
)

__all__ = [
    # Client
    "GrowattClient",
    # Exceptions
    "GrowattError",
    "AuthenticationError",
    "NotAuthenticated",
    "TransportError",
    "DecodeError",
    "RemoteError",
    "GrowattParameterError",
    # Models
    "Session",
    "DeviceDescriptor",
    "PlantDeviceList",
    "MixStatus",
]
