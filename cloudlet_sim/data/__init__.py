"""Descriptor generation modules."""

from .generators import CloudletGenerator, uniform_vms

__all__ = [
    "CloudletGenerator",
    "uniform_vms",
]
