"""Finish-time alignment and timed jobs."""

from batch_farming.scheduling.jobs import DeadlineTask, JobState, TimedJob
from batch_farming.scheduling.timing import TimingScheduler

__all__ = ["TimingScheduler", "TimedJob", "JobState", "DeadlineTask"]
