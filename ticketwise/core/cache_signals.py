"""
Cache invalidation signals
Automatically invalidate cache when data changes
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import (
    invalidate_namespace,
    CUSTOMERS_NAMESPACE, REPORTS_NAMESPACE, INVENTORY_DASHBOARD_NAMESPACE,
)

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

CUSTOMER_MODELS = {'Customer'}
REPORT_MODELS = {'Ticket', 'TicketReply', 'TicketStatusHistory', 'SatisfactionSurvey', 'Official', 'Department'}
INVENTORY_MODELS = {'InventoryProduct', 'InventoryMovement', 'UserInventoryAssignment'}


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations to prevent excessive cache clearing.
    Remember to manually invalidate cache after the block!
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def _invalidate_after_commit(namespace):
    # Once now, once after commit: a read inside the open transaction window
    # must not leave stale rows cached
    invalidate_namespace(namespace)
    transaction.on_commit(lambda: invalidate_namespace(namespace))


@receiver([post_save, post_delete])
def invalidate_model_caches(sender, instance, **kwargs):
    """Invalidate list, report and dashboard caches when their rows change"""
    if is_suspended():
        return

    model_name = sender.__name__
    try:
        if model_name in CUSTOMER_MODELS:
            _invalidate_after_commit(CUSTOMERS_NAMESPACE)
            _invalidate_after_commit(REPORTS_NAMESPACE)
        elif model_name in REPORT_MODELS:
            _invalidate_after_commit(REPORTS_NAMESPACE)
        elif model_name in INVENTORY_MODELS:
            _invalidate_after_commit(INVENTORY_DASHBOARD_NAMESPACE)
    except Exception as e:
        logger.warning(f"Error in invalidate_model_caches signal for {model_name}: {e}")
