"""Cloudlet (task) model and lifecycle."""

from typing import Any, Optional
from enum import Enum, IntEnum
from loguru import logger

from .errors import InvalidDescriptorError, InvalidStatusTransition


class Priority(IntEnum):
    """Cloudlet priority classes. Lower value means higher priority."""
    HIGH = 0
    MEDIUM = 1
    LOW = 2

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        """Accept a Priority, its integer value or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidDescriptorError(f"Unknown priority: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidDescriptorError(f"Unknown priority: {value!r}") from None
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidDescriptorError(f"Unknown priority: {value!r}") from None
        raise InvalidDescriptorError(f"Unknown priority: {value!r}")


class CloudletStatus(Enum):
    """Cloudlet lifecycle status."""
    CREATED = "created"
    QUEUED = "queued"
    IN_EXECUTION = "in_execution"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_final(self) -> bool:
        return self in (CloudletStatus.SUCCESS, CloudletStatus.FAILED)


_ALLOWED_TRANSITIONS = {
    CloudletStatus.CREATED: {CloudletStatus.QUEUED, CloudletStatus.FAILED},
    CloudletStatus.QUEUED: {CloudletStatus.IN_EXECUTION, CloudletStatus.FAILED},
    CloudletStatus.IN_EXECUTION: {CloudletStatus.SUCCESS, CloudletStatus.FAILED},
    CloudletStatus.SUCCESS: set(),
    CloudletStatus.FAILED: set(),
}


class Cloudlet:
    """A unit of simulated work: ``length`` million instructions on ``pe_count`` PEs."""

    def __init__(
        self,
        cloudlet_id: int,
        length: int,
        pe_count: int = 1,
        priority: Any = Priority.MEDIUM,
        file_size: int = 300,
        output_size: int = 300,
        vm_id: Optional[int] = None,
    ):
        self.cloudlet_id = cloudlet_id
        self.length = length
        self.pe_count = pe_count
        # Kept raw until validated by the broker
        self.priority = priority
        self.file_size = file_size
        self.output_size = output_size

        self.status = CloudletStatus.CREATED
        self.owner_id: Optional[int] = None
        self.vm_id = vm_id
        self.datacenter_id: Optional[int] = None
        self.failure_reason: Optional[str] = None

        # Time accounting
        self.submission_time: Optional[float] = None
        self.exec_start_time: Optional[float] = None
        self.finish_time: Optional[float] = None
        self.actual_cpu_time: float = 0.0

        # Cost accounting, stamped by the executing datacenter
        self.cost_per_sec = 0.0
        self.cost_per_bw = 0.0

    def validate(self) -> None:
        """Check the descriptor and normalise its priority.

        Raises:
            InvalidDescriptorError: non-positive length or PE count, negative
                file sizes, or an unknown priority.
        """
        if isinstance(self.length, bool) or not isinstance(self.length, int) or self.length <= 0:
            raise InvalidDescriptorError(
                f"Cloudlet {self.cloudlet_id}: length must be a positive integer, got {self.length!r}"
            )
        if isinstance(self.pe_count, bool) or not isinstance(self.pe_count, int) or self.pe_count <= 0:
            raise InvalidDescriptorError(
                f"Cloudlet {self.cloudlet_id}: pe_count must be a positive integer, got {self.pe_count!r}"
            )
        if self.file_size < 0 or self.output_size < 0:
            raise InvalidDescriptorError(f"Cloudlet {self.cloudlet_id}: file sizes must be non-negative")
        self.priority = Priority.parse(self.priority)

    def set_status(self, status: CloudletStatus) -> None:
        """Move to ``status``, refusing backward moves and changes after completion."""
        if status is self.status:
            return
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransition(
                f"Cloudlet {self.cloudlet_id}: {self.status.value} -> {status.value} is not allowed"
            )
        self.status = status

    def mark_queued(self, current_time: float) -> None:
        self.set_status(CloudletStatus.QUEUED)
        self.submission_time = current_time

    def mark_started(self, current_time: float) -> None:
        self.set_status(CloudletStatus.IN_EXECUTION)
        self.exec_start_time = current_time
        logger.debug(f"Cloudlet {self.cloudlet_id} started on VM {self.vm_id} at {current_time:.2f}s")

    def mark_finished(self, current_time: float) -> None:
        self.set_status(CloudletStatus.SUCCESS)
        self.finish_time = current_time
        self.actual_cpu_time = current_time - self.exec_start_time
        logger.info(f"Cloudlet {self.cloudlet_id} finished on VM {self.vm_id} at {current_time:.2f}s "
                    f"(cpu time {self.actual_cpu_time:.2f}s)")

    def mark_failed(self, current_time: float, reason: str) -> None:
        self.set_status(CloudletStatus.FAILED)
        self.finish_time = current_time
        if self.exec_start_time is not None:
            self.actual_cpu_time = current_time - self.exec_start_time
        self.failure_reason = reason
        logger.warning(f"Cloudlet {self.cloudlet_id} failed at {current_time:.2f}s: {reason}")

    @property
    def wait_time(self) -> float:
        """Time between submission and start of execution."""
        if self.exec_start_time is None or self.submission_time is None:
            return 0.0
        return self.exec_start_time - self.submission_time

    @property
    def processing_cost(self) -> float:
        """Bandwidth cost of staging files in and out plus CPU time cost."""
        return (self.cost_per_bw * (self.file_size + self.output_size)
                + self.cost_per_sec * self.actual_cpu_time)

    def __repr__(self) -> str:
        return (f"Cloudlet(id={self.cloudlet_id}, length={self.length}, "
                f"priority={self.priority!r}, status={self.status.value})")
