"""Application reconciler and its bounded worker pool.

``ApplicationReconciler.reconcile(namespace, name)`` is one level-triggered
pass: read the Application and its newest revision, then either run the
workflow engine (when the revision declares steps) or assemble and apply the
resources directly. The pass ends by writing the Application status back if
it changed, guarded by the Application's resourceVersion.

``Controller`` feeds the reconciler from a :class:`WorkQueue`: store events
enqueue the owning Application, a bounded pool of worker threads drains the
queue, and a pass that asks for a requeue is re-added after its delay.

Example::

    store = InMemoryObjectStore()
    reconciler = ApplicationReconciler(store, settings=settings, renderer=renderer)
    controller = Controller(reconciler, settings=settings)
    controller.watch(store)
    controller.start()
    ...
    controller.stop()
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Hashable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from appdelivery.assemble.assembler import AppManifests
from appdelivery.assemble.options import WorkloadOption
from appdelivery.controller.applicator import Applicator
from appdelivery.controller.queue import WorkQueue
from appdelivery.core.errors import (
    AssemblyError,
    BadRevisionNameError,
    ConflictError,
    DeliveryError,
    NotFoundError,
    get_retry_after,
)
from appdelivery.core.labels import (
    APPLICATION_API_VERSION,
    APPLICATION_KIND,
    APPLICATION_REVISION_KIND,
    CONDITION_ASSEMBLED,
    LABEL_APP_NAME,
)
from appdelivery.core.logging import LogContext, get_logger
from appdelivery.core.naming import extract_revision_num
from appdelivery.core.objects import get_labels, get_name, get_namespace, get_owner_references, set_condition
from appdelivery.core.settings import ControllerSettings
from appdelivery.core.store import ObjectStore
from appdelivery.models import Application, ApplicationRevision
from appdelivery.workflow.context import WorkflowContext
from appdelivery.workflow.dispatcher import DefaultStepRenderer, StepDispatcher, StepRenderer
from appdelivery.workflow.engine import ReconcileResult, WorkflowEngine, condition

logger = get_logger(__name__)


class ApplicationReconciler:
    """One reconciliation pass per call; holds no per-application state."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        settings: ControllerSettings | None = None,
        renderer: StepRenderer | None = None,
        options: list[WorkloadOption] | None = None,
    ):
        self.store = store
        self.settings = settings or ControllerSettings()
        self.options = options
        self.applicator = Applicator(store)
        self.engine = WorkflowEngine(
            store,
            StepDispatcher(store, renderer or DefaultStepRenderer()),
            settings=self.settings,
            options=options,
        )

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        with LogContext(app=name, namespace=namespace):
            try:
                return self._reconcile(namespace, name)
            except ConflictError as e:
                logger.info("reconcile.conflict", error=str(e))
                return ReconcileResult(requeue_after=self.settings.conflict_requeue_seconds, message=str(e))
            except DeliveryError as e:
                if e.retryable:
                    delay = get_retry_after(e) or self.settings.requeue_after_seconds
                    logger.info("reconcile.retry", error=str(e), requeue_after=delay)
                    return ReconcileResult(requeue_after=delay, message=str(e))
                logger.error("reconcile.failed", **e.to_dict())
                return ReconcileResult(message=str(e))

    def _reconcile(self, namespace: str, name: str) -> ReconcileResult:
        try:
            obj = self.store.get(APPLICATION_API_VERSION, APPLICATION_KIND, namespace, name)
        except NotFoundError:
            logger.debug("reconcile.gone")
            return ReconcileResult()

        app = Application(obj)
        before = copy.deepcopy(obj.get("status"))

        revision = self._latest_revision(app)
        if revision is None:
            logger.info("reconcile.no_revision")
            return ReconcileResult(message="no revision")
        if app.latest_revision and self._revision_number(app.latest_revision) > revision.number:
            logger.warning("reconcile.stale_revision_list", recorded=app.latest_revision, found=revision.name)
            return ReconcileResult(requeue_after=self.settings.requeue_after_seconds, message="stale revision read")
        app.set_latest_revision(revision)

        with LogContext(revision=revision.name):
            if revision.workflow_steps:
                result = self.engine.reconcile(app, revision)
            else:
                result = self._apply_directly(app, revision)

            if app.obj.get("status") != before:
                app.obj = self.store.update_status(app.obj)
                logger.debug("reconcile.status_updated")
        return result

    @staticmethod
    def _revision_number(revision_name: str) -> int:
        try:
            return extract_revision_num(revision_name)
        except BadRevisionNameError:
            return -1

    def _latest_revision(self, app: Application) -> ApplicationRevision | None:
        """Highest-numbered revision labeled with the application's name."""
        best: tuple[int, dict[str, Any]] | None = None
        for obj in self.store.list(
            APPLICATION_API_VERSION, APPLICATION_REVISION_KIND, app.namespace, app.revision_selector()
        ):
            try:
                number = extract_revision_num(get_name(obj))
            except BadRevisionNameError as e:
                logger.warning("reconcile.bad_revision_name", error=str(e))
                continue
            if best is None or number > best[0]:
                best = (number, obj)
        return ApplicationRevision.from_object(best[1]) if best else None

    def _apply_directly(self, app: Application, revision: ApplicationRevision) -> ReconcileResult:
        result = AppManifests(revision, settings=self.settings, store=self.store, options=self.options).assemble()
        # components that did assemble are applied even when siblings failed
        self.applicator.apply(result.resources())

        if result.ok:
            set_condition(app.obj, condition(CONDITION_ASSEMBLED, True, "Assembled"))
            return ReconcileResult()

        error = AssemblyError(result.errors).with_context(revision=revision.name)
        set_condition(app.obj, condition(CONDITION_ASSEMBLED, False, type(error).__name__, str(error)))
        if error.retryable:
            return ReconcileResult(requeue_after=self.settings.requeue_after_seconds, message=str(error))
        logger.error("reconcile.assembly_failed", **error.to_dict())
        return ReconcileResult(message=str(error))


@dataclass
class ControllerStats:
    """Counters for a running controller."""

    reconciles: int = 0
    requeues: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"reconciles": self.reconciles, "requeues": self.requeues, "errors": self.errors}


class Controller:
    """Drains a work queue of ``(namespace, name)`` keys with a bounded thread pool.

    The queue guarantees at most one pass per Application in flight; the
    pool size (``max_concurrent_reconciles``) bounds passes across
    Applications.
    """

    def __init__(
        self,
        reconciler: ApplicationReconciler,
        *,
        settings: ControllerSettings | None = None,
        queue: WorkQueue | None = None,
    ):
        self.reconciler = reconciler
        self.settings = settings or reconciler.settings
        self.queue = queue or WorkQueue()
        self.stats = ControllerStats()
        self._stats_lock = threading.Lock()
        self._pool: ThreadPoolExecutor | None = None

    def enqueue(self, namespace: str, name: str) -> None:
        self.queue.add((namespace, name))

    def watch(self, store: Any) -> None:
        """Enqueue the owning Application on every store event."""
        store.subscribe(self._on_event)

    def _on_event(self, event: str, obj: dict[str, Any]) -> None:
        namespace = get_namespace(obj)
        kind = obj.get("kind")
        if kind == APPLICATION_KIND:
            self.enqueue(namespace, get_name(obj))
            return
        if kind == APPLICATION_REVISION_KIND:
            app_name = get_labels(obj).get(LABEL_APP_NAME)
            if app_name:
                self.enqueue(namespace, app_name)
            return
        try:
            context = WorkflowContext.of(obj)
        except DeliveryError:
            context = None
        if context is not None:
            self.enqueue(namespace, context.application_name)
            return
        for ref in get_owner_references(obj):
            if ref.get("kind") == APPLICATION_KIND:
                self.enqueue(namespace, ref.get("name", ""))

    def _record(self, **deltas: int) -> None:
        with self._stats_lock:
            for key, value in deltas.items():
                setattr(self.stats, key, getattr(self.stats, key) + value)

    def process_next(self, timeout: float | None = None) -> bool:
        """Run one queued pass; False when nothing was available."""
        key: Hashable | None = self.queue.get(timeout=timeout)
        if key is None:
            return False
        namespace, name = key
        try:
            result = self.reconciler.reconcile(namespace, name)
        except Exception:
            logger.exception("controller.reconcile_crashed", app=name, namespace=namespace)
            self._record(reconciles=1, errors=1, requeues=1)
            self.queue.add_after(key, self.settings.requeue_after_seconds)
            return True
        finally:
            self.queue.done(key)

        self._record(reconciles=1)
        if result.requeue:
            self._record(requeues=1)
            self.queue.add_after(key, result.requeue_after)
        return True

    def _work(self) -> None:
        while not self.queue.shutting_down:
            self.process_next(timeout=1.0)

    def start(self) -> None:
        """Start ``max_concurrent_reconciles`` worker threads (non-blocking)."""
        workers = self.settings.max_concurrent_reconciles
        self._pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="appdelivery-reconcile")
        for _ in range(workers):
            self._pool.submit(self._work)
        logger.info("controller.started", workers=workers)

    def stop(self, wait: bool = True) -> None:
        logger.info("controller.stopping", stats=self.stats.to_dict())
        self.queue.shutdown()
        if self._pool is not None:
            self._pool.shutdown(wait=wait)
            self._pool = None


__all__ = ["ApplicationReconciler", "Controller", "ControllerStats"]
