"""
Appdelivery - reconciliation core of a declarative application-delivery controller.

- appdelivery.assemble: turns rendered component manifests into owned, labeled,
  linked platform resources
- appdelivery.workflow: drives an application's ordered workflow steps through
  external step controllers
- appdelivery.controller: work queue and reconciler tying both to the object store
"""

__version__ = "0.1.0"

from appdelivery.assemble import AppManifests, AssemblyResult
from appdelivery.controller import ApplicationReconciler, Controller
from appdelivery.core.settings import ControllerSettings
from appdelivery.core.store import InMemoryObjectStore
from appdelivery.workflow import WorkflowEngine

__all__ = [
    "__version__",
    "AppManifests",
    "AssemblyResult",
    "ApplicationReconciler",
    "Controller",
    "ControllerSettings",
    "InMemoryObjectStore",
    "WorkflowEngine",
]
