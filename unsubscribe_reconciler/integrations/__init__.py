"""
Integrations package initialization.
Exports the collaborator seams and their AWS-backed implementations.
"""
from .base import LogStore, QueryStatusPage, SubscriberStore
from .cloudwatch_logs import CloudWatchLogStore
from .subscriber_store import DynamoSubscriberStore

__all__ = [
    "LogStore",
    "QueryStatusPage",
    "SubscriberStore",
    "CloudWatchLogStore",
    "DynamoSubscriberStore",
]
