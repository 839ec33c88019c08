from .alldebrid import AllDebrid
from .base import HttpxDebridBase
from .debridlink import DebridLink
from .premiumize import Premiumize
from .realdebrid import RealDebrid
from .registry import DEFAULT_PROVIDERS, DebridRegistry

__all__ = [
    "DEFAULT_PROVIDERS",
    "AllDebrid",
    "DebridLink",
    "DebridRegistry",
    "HttpxDebridBase",
    "Premiumize",
    "RealDebrid",
]
