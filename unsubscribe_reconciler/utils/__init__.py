"""
Utilities package initialization.
"""
from .logger import get_logger, log_business_event, log_performance, mask_email, setup_logging

__all__ = ["get_logger", "log_business_event", "log_performance", "mask_email", "setup_logging"]
