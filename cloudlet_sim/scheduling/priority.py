"""Priority ordering applied to cloudlets before submission."""

from typing import Iterable, List

from ..core.cloudlet import Cloudlet, Priority


def priority_key(cloudlet: Cloudlet) -> int:
    """Sort key: the numeric priority class only."""
    return int(Priority.parse(cloudlet.priority))


def sort_by_priority(cloudlets: Iterable[Cloudlet]) -> List[Cloudlet]:
    """Return cloudlets ordered HIGH, MEDIUM, LOW.

    The sort is stable: cloudlets of equal priority keep their input order,
    never reordered by length or id.
    """
    return sorted(cloudlets, key=priority_key)
