"""
Queue module.
Contains the polling job queue, claimed item handles and monitoring queries.
"""

from pgcoord.queue.fetched_job import FetchedJob
from pgcoord.queue.job_queue import JobQueue, cancel_after
from pgcoord.queue.monitoring import JobQueueMonitor, QueueCounts

__all__ = [
    "JobQueue",
    "FetchedJob",
    "cancel_after",
    "JobQueueMonitor",
    "QueueCounts",
]
