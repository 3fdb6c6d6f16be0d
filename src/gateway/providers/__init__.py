"""Provider drivers behind the uniform submit / poll task API."""

from .providers_base import AsyncTaskDriver, SyncDriver, SyncResult
from .providers_bfl import BflDriver
from .providers_byte_ark import ByteArkDriver
from .providers_jimeng import JimengDriver
from .providers_runway import RunwayDriver
from .providers_tripo import TripoDriver

__all__ = [
    "AsyncTaskDriver",
    "SyncDriver",
    "SyncResult",
    "BflDriver",
    "ByteArkDriver",
    "JimengDriver",
    "RunwayDriver",
    "TripoDriver",
]
