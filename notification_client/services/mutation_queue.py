# notification_client/services/mutation_queue.py
import asyncio
import logging
from typing import Any, Callable, Optional

from notification_client.services.session import Session

logger = logging.getLogger(__name__)


class StaleMutation(Exception):
    """La mutación se pidió para una sesión que ya no es la activa."""


class MutationQueue:
    """
    Cola única por la que pasan todas las mutaciones del Store
    (fetch, push y acciones del usuario), en el orden en que se encolan.

    Cada mutación lleva la época de la sesión de cuando se pidió; si al
    momento de aplicarla la época avanzó, se descarta.
    """

    def __init__(self, session: Session):
        self.session = session
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    def start(self):
        if self._worker is not None and not self._worker.done():
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run())

    async def stop(self):
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        self._drain()

    def _drain(self):
        # lo que quedó encolado no se va a aplicar: nadie debe quedar esperando
        if self._queue is None:
            return
        while not self._queue.empty():
            epoch, _fn, _args, future = self._queue.get_nowait()
            if not future.done():
                future.set_exception(StaleMutation(epoch))
            self._queue.task_done()

    async def submit(self, epoch: int, fn: Callable[..., Any], *args) -> Any:
        """
        Encola fn(*args) y espera a que se aplique.
        Lanza StaleMutation si la sesión cambió mientras esperaba.
        """
        self.start()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((epoch, fn, args, future))
        return await future

    async def join(self):
        if self._queue is not None:
            await self._queue.join()

    async def _run(self):
        while True:
            epoch, fn, args, future = await self._queue.get()
            try:
                if future.cancelled():
                    continue
                if not self.session.is_current(epoch):
                    logger.info("[queue] Mutación descartada: época %s ya no es la activa", epoch)
                    future.set_exception(StaleMutation(epoch))
                    continue
                try:
                    result = fn(*args)
                except Exception as e:
                    future.set_exception(e)
                else:
                    future.set_result(result)
            finally:
                self._queue.task_done()
