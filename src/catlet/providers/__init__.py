"""Compute API providers and bootstrap generation."""

from catlet.providers.base import ComputeAPI, StopMode
from catlet.providers.cloudinit import CloudInitProvider
from catlet.providers.eryph import EryphComputeClient

__all__ = [
    "ComputeAPI",
    "StopMode",
    "CloudInitProvider",
    "EryphComputeClient",
]
