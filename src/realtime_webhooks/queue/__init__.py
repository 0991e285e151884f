"""Job queue drivers."""

from .base import Job, JobHandler, QueueDriver
from .memory import MemoryQueueDriver

__all__ = ["Job", "JobHandler", "QueueDriver", "MemoryQueueDriver"]
