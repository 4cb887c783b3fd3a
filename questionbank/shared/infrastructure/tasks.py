import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)

# Referencias fuertes: el event loop solo guarda referencias débiles a las tasks.
_background_tasks: Set[asyncio.Task] = set()

def fire_and_forget(coro: Awaitable[None], name: str) -> asyncio.Task:
    """
    Lanza un efecto secundario sin esperarlo.
    Los errores se observan en el callback, se loguean y se descartan:
    nunca llegan al llamador ni quedan como excepción sin recuperar.
    """
    task = asyncio.ensure_future(coro)
    task.set_name(name)
    _background_tasks.add(task)
    task.add_done_callback(_observe)
    return task

def _observe(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        logger.warning(f"⚠️ Tarea en segundo plano cancelada: {task.get_name()}")
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"⚠️ Tarea en segundo plano '{task.get_name()}' falló (descartado): {exc}")

def pending_count() -> int:
    return len(_background_tasks)

async def drain_background_tasks(timeout: float | None = None) -> None:
    """Espera a las tareas pendientes (apagado ordenado y tests)."""
    if not _background_tasks:
        return
    pending = list(_background_tasks)
    _, not_done = await asyncio.wait(pending, timeout=timeout)
    for task in not_done:
        task.cancel()
