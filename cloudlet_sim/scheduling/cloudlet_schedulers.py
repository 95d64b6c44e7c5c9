"""VM-level cloudlet execution policies."""

from abc import ABC, abstractmethod
from collections import deque
from enum import Enum
from typing import Deque, Dict, List, Optional
from loguru import logger

from ..core.cloudlet import Cloudlet

# Remaining work (in MI) below which a cloudlet counts as done
FINISH_TOLERANCE_MI = 1e-6


class CloudletSchedulingPolicy(Enum):
    """How a VM shares its PEs among cloudlets."""
    TIME_SHARED = "time_shared"
    SPACE_SHARED = "space_shared"


class ResCloudlet:
    """Execution bookkeeping for a cloudlet while it sits on a VM."""

    def __init__(self, cloudlet: Cloudlet):
        self.cloudlet = cloudlet
        self.remaining = float(cloudlet.length)
        self.rate = 0.0  # MIPS currently granted

    @property
    def is_done(self) -> bool:
        return self.remaining <= FINISH_TOLERANCE_MI


class CloudletScheduler(ABC):
    """Tracks and advances the cloudlets running on one VM.

    The owning datacenter calls :meth:`update_processing` with the MIPS share
    the host granted the VM every time simulated time advances or the cloudlet
    set changes.
    """

    policy: CloudletSchedulingPolicy

    def __init__(self):
        self.exec_list: List[ResCloudlet] = []
        self.finished_list: List[Cloudlet] = []
        self.previous_time = 0.0
        self.mips_share: List[float] = []

    @property
    def num_pes(self) -> int:
        return len(self.mips_share)

    @property
    def total_mips(self) -> float:
        return float(sum(self.mips_share))

    def submit(self, cloudlet: Cloudlet, current_time: float) -> None:
        """Admit a cloudlet. The caller has already advanced processing to ``current_time``."""
        self._admit(ResCloudlet(cloudlet), current_time)
        self._assign_rates()

    @abstractmethod
    def _admit(self, rcl: ResCloudlet, current_time: float) -> None:
        pass

    @abstractmethod
    def _assign_rates(self) -> None:
        pass

    def _on_finished(self, current_time: float) -> None:
        """Hook run after finished cloudlets are removed from the exec list."""

    def update_processing(self, current_time: float, mips_share: List[float]) -> Optional[float]:
        """Advance all running cloudlets to ``current_time``.

        Returns the earliest predicted completion time, or None when idle.
        """
        elapsed = current_time - self.previous_time
        if elapsed > 0:
            for rcl in self.exec_list:
                rcl.remaining -= rcl.rate * elapsed
        self.previous_time = current_time

        done = [rcl for rcl in self.exec_list if rcl.is_done]
        if done:
            self.exec_list = [rcl for rcl in self.exec_list if not rcl.is_done]
            for rcl in done:
                rcl.remaining = 0.0
                rcl.cloudlet.mark_finished(current_time)
                self.finished_list.append(rcl.cloudlet)
            self._on_finished(current_time)

        self.mips_share = list(mips_share)
        self._assign_rates()
        return self.next_finish_time(current_time)

    def next_finish_time(self, current_time: float) -> Optional[float]:
        estimates = [
            current_time + rcl.remaining / rcl.rate
            for rcl in self.exec_list if rcl.rate > 0
        ]
        return min(estimates) if estimates else None

    def pop_finished(self) -> List[Cloudlet]:
        """Hand back cloudlets that completed since the last call."""
        finished, self.finished_list = self.finished_list, []
        return finished

    def cancel(self, cloudlet_id: int) -> Optional[Cloudlet]:
        """Remove a cloudlet that has not finished yet."""
        for rcl in self.exec_list:
            if rcl.cloudlet.cloudlet_id == cloudlet_id:
                self.exec_list.remove(rcl)
                self._on_finished(self.previous_time)
                self._assign_rates()
                return rcl.cloudlet
        return None

    def running_cloudlets(self) -> List[Cloudlet]:
        return [rcl.cloudlet for rcl in self.exec_list]

    def waiting_cloudlets(self) -> List[Cloudlet]:
        return []

    def is_idle(self) -> bool:
        return not self.exec_list and not self.waiting_cloudlets()

    def drain(self) -> List[Cloudlet]:
        """Remove and return every unfinished cloudlet."""
        pending = self.running_cloudlets() + self.waiting_cloudlets()
        self.exec_list = []
        return pending


class TimeSharedCloudletScheduler(CloudletScheduler):
    """All cloudlets run at once and split the VM's MIPS by requested PEs."""

    policy = CloudletSchedulingPolicy.TIME_SHARED

    def _admit(self, rcl: ResCloudlet, current_time: float) -> None:
        rcl.cloudlet.mark_started(current_time)
        self.exec_list.append(rcl)

    def _assign_rates(self) -> None:
        if not self.exec_list or not self.mips_share:
            for rcl in self.exec_list:
                rcl.rate = 0.0
            return
        pes_in_use = sum(rcl.cloudlet.pe_count for rcl in self.exec_list)
        capacity_per_pe = self.total_mips / max(pes_in_use, self.num_pes)
        for rcl in self.exec_list:
            rcl.rate = capacity_per_pe * rcl.cloudlet.pe_count


class SpaceSharedCloudletScheduler(CloudletScheduler):
    """Cloudlets get whole PEs and start in FIFO order as PEs free up."""

    policy = CloudletSchedulingPolicy.SPACE_SHARED

    def __init__(self):
        super().__init__()
        self.waiting: Deque[ResCloudlet] = deque()

    @property
    def used_pes(self) -> int:
        return sum(rcl.cloudlet.pe_count for rcl in self.exec_list)

    @property
    def free_pes(self) -> int:
        return self.num_pes - self.used_pes

    def _admit(self, rcl: ResCloudlet, current_time: float) -> None:
        self.waiting.append(rcl)
        self._start_waiting(current_time)

    def _start_waiting(self, current_time: float) -> None:
        while self.waiting and self.waiting[0].cloudlet.pe_count <= self.free_pes:
            rcl = self.waiting.popleft()
            rcl.cloudlet.mark_started(current_time)
            self.exec_list.append(rcl)
            logger.debug(f"Cloudlet {rcl.cloudlet.cloudlet_id} moved from waiting queue to execution")

    def _on_finished(self, current_time: float) -> None:
        self._start_waiting(current_time)

    def _assign_rates(self) -> None:
        per_pe = self.total_mips / self.num_pes if self.num_pes else 0.0
        for rcl in self.exec_list:
            rcl.rate = per_pe * rcl.cloudlet.pe_count

    def update_processing(self, current_time: float, mips_share: List[float]) -> Optional[float]:
        if not self.mips_share and mips_share:
            # PEs just became known, start whatever fits
            self.mips_share = list(mips_share)
            self._start_waiting(current_time)
        return super().update_processing(current_time, mips_share)

    def cancel(self, cloudlet_id: int) -> Optional[Cloudlet]:
        for rcl in self.waiting:
            if rcl.cloudlet.cloudlet_id == cloudlet_id:
                self.waiting.remove(rcl)
                return rcl.cloudlet
        return super().cancel(cloudlet_id)

    def waiting_cloudlets(self) -> List[Cloudlet]:
        return [rcl.cloudlet for rcl in self.waiting]

    def drain(self) -> List[Cloudlet]:
        pending = super().drain()
        self.waiting.clear()
        return pending


_SCHEDULERS: Dict[CloudletSchedulingPolicy, type] = {
    CloudletSchedulingPolicy.TIME_SHARED: TimeSharedCloudletScheduler,
    CloudletSchedulingPolicy.SPACE_SHARED: SpaceSharedCloudletScheduler,
}


def create_cloudlet_scheduler(policy: CloudletSchedulingPolicy) -> CloudletScheduler:
    """Create a scheduler instance for ``policy``."""
    return _SCHEDULERS[CloudletSchedulingPolicy(policy)]()
