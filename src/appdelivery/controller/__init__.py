"""Reconciliation loop: work queue, reconciler, direct-apply path."""

from appdelivery.controller.applicator import Applicator
from appdelivery.controller.queue import WorkQueue
from appdelivery.controller.reconciler import ApplicationReconciler, Controller, ControllerStats

__all__ = ["Applicator", "WorkQueue", "ApplicationReconciler", "Controller", "ControllerStats"]
