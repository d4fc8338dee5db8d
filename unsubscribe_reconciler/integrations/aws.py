"""
boto3 client construction shared by the AWS-backed stores.

Clients are built on boto3's default session, which is not safe to use from
several threads at once. Stores create their clients lazily and the first use
can happen inside ``asyncio.to_thread`` workers, so creation is serialized.
"""
import threading
from typing import Any

import boto3

from unsubscribe_reconciler.config import AWS_REGION

_client_lock = threading.Lock()


class LazyClient:
    """Descriptor holding one boto3 client per instance, created on first access.

    An injected client (stored under the private attribute) is used as is.
    """

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.attr = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.attr = f"_{name}"

    def __get__(self, instance: Any, owner: type) -> Any:
        if instance is None:
            return self
        client = getattr(instance, self.attr, None)
        if client is None:
            with _client_lock:
                client = getattr(instance, self.attr, None)
                if client is None:
                    client = boto3.client(self.service_name, region_name=AWS_REGION)
                    setattr(instance, self.attr, client)
        return client


__all__ = ["LazyClient"]
