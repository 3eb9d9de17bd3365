"""
the dispatcher for the best-effort side effects of catalog writes (review requests, association
re-pointing).  A side effect is run after the primary write has been stored; its failure is logged
and never reaches the caller of the primary operation.
"""
import threading
from concurrent.futures import ThreadPoolExecutor, Future, wait as wait_for
from logging import Logger, getLogger
from collections.abc import Mapping, Callable
from typing import List

DEF_MAX_WORKERS = 4

class SideEffectDispatcher:
    """
    a runner of side-effect tasks.  Tasks run on a pool of background threads unless the
    dispatcher is configured to run them synchronously, in which case each task completes before
    :py:meth:`dispatch` returns.

    This class supports the following configuration parameters:

    ``asynchronous``
        (*bool*) if False, run tasks in the calling thread (default: True)
    ``max_workers``
        (*int*) the maximum number of threads to run tasks in (default: 4)
    """

    def __init__(self, config: Mapping=None, log: Logger=None):
        if config is None:
            config = {}
        if not log:
            log = getLogger("MDCAT").getChild("sideeffects")
        self.log = log
        self._async = config.get("asynchronous", True)
        self._maxw = config.get("max_workers", DEF_MAX_WORKERS)
        self._pool = None
        self._pending: List[Future] = []
        self._lock = threading.Lock()

    @property
    def asynchronous(self) -> bool:
        return bool(self._async)

    def dispatch(self, name: str, task: Callable, *args, **kw):
        """
        run a side-effect task
        :param str     name:  a short description of the task for log messages
        :param Callable task:  the function to call
        :param args:  the positional arguments to pass to the task
        :param kw:    the keyword arguments to pass to the task
        """
        if not self._async:
            self._run(name, task, args, kw)
            return

        with self._lock:
            if not self._pool:
                self._pool = ThreadPoolExecutor(max_workers=self._maxw,
                                                thread_name_prefix="mdcat-side")
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(self._pool.submit(self._run, name, task, args, kw))

    def _run(self, name, task, args, kw):
        try:
            task(*args, **kw)
            self.log.debug("Side effect completed: %s", name)
        except Exception as ex:
            self.log.error("Side effect failed (%s): %s", name, str(ex))

    def wait(self, timeout: float=None):
        """
        block until all tasks dispatched so far have completed (or the timeout has passed)
        """
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait_for(pending, timeout=timeout)

    def shutdown(self, wait: bool=True):
        """
        stop accepting tasks and release the worker threads
        """
        with self._lock:
            pool, self._pool = self._pool, None
        if pool:
            pool.shutdown(wait=wait)
