"""Job queue and batch execution against the shared engine.

Engine sequences (initialize -> execute -> fetch scatter -> fetch image)
run one at a time on the calling thread, each inside the client's session.
Image formation for a finished engine run is handed to a thread pool, so
it overlaps the next job's engine sequence. Results come back in enqueue
order regardless of when each formation finishes.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from ..core.config import FormationConfig, RunConfig
from ..core.errors import EngineError, ExportError, FormationError, RunAborted
from ..core.grid import ScatterGrid
from ..core.logging import get_logger
from ..core.parameters import ParameterSet
from ..engine import EngineClient, create_backend
from ..imaging.formation import form_raster_with
from ..imaging.sink import ImageSink, present
from .results import SimulationResult

logger = get_logger(__name__)


class JobManager:
    """FIFO queue of ParameterSets driven through one EngineClient.

    Args:
        client: Gateway to the engine; the manager holds its session for
            every engine sequence
        formation: Image formation settings
        workers: Threads for non-engine stages (formation, export)
        sink: Optional sink receiving each result's raster in enqueue order
    """

    def __init__(
        self,
        client: EngineClient,
        formation: FormationConfig | None = None,
        workers: int = 1,
        sink: Optional[ImageSink] = None,
    ):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self._client = client
        self._formation = formation or FormationConfig()
        self._workers = workers
        self._sink = sink
        self._queue: list[ParameterSet] = []
        self._queue_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: RunConfig, sink: Optional[ImageSink] = None) -> JobManager:
        """Build backend, client and manager from a RunConfig, enqueueing its jobs."""
        client = EngineClient(create_backend(config.engine))
        manager = cls(client, formation=config.formation, workers=config.runtime.workers, sink=sink)
        for params in config.jobs:
            manager.enqueue(params)
        return manager

    @property
    def pending(self) -> int:
        with self._queue_lock:
            return len(self._queue)

    def enqueue(self, params: ParameterSet) -> None:
        """Append a job to the current queue."""
        with self._queue_lock:
            self._queue.append(params)

    def clear(self) -> None:
        """Discard the current queue without running it."""
        with self._queue_lock:
            self._queue = []

    def _engine_sequence(self, params: ParameterSet) -> tuple[ScatterGrid, ScatterGrid]:
        with self._client.session() as engine:
            engine.initialize(params)
            engine.execute()
            scatter = engine.fetch_scatter_grid()
            values, width, height = engine.fetch_rendered_grid()
        return scatter, ScatterGrid(values=values, rows=height, cols=width)

    def _form(
        self, params: ParameterSet, scatter: ScatterGrid, rendered: ScatterGrid
    ) -> SimulationResult:
        raster = form_raster_with(rendered, self._formation)
        return SimulationResult(
            params=params,
            scatter=scatter,
            raster=raster,
            rendered_shape=(rendered.cols, rendered.rows),
        )

    def run_all(self) -> list[SimulationResult]:
        """Run every queued job and return results in enqueue order.

        Takes ownership of the current queue; jobs enqueued meanwhile form
        a new queue. A job the engine aborts does not stop the batch.

        Raises:
            RunAborted: After the batch, if any job aborted. ``results``
                holds the completed results positionally.
        """
        with self._queue_lock:
            jobs, self._queue = self._queue, []
        if not jobs:
            return []

        logger.info("Running batch", {"jobs": len(jobs), "workers": self._workers})
        failures: dict[int, Exception] = {}
        futures: list[Future | None] = []
        results: list[SimulationResult | None] = []

        with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="semsim") as pool:
            for index, params in enumerate(jobs):
                job_log = logger.bind(job=index, mode=params.mode)
                try:
                    scatter, rendered = self._engine_sequence(params)
                except EngineError as exc:
                    job_log.error("Job aborted by engine", {"error": str(exc)})
                    failures[index] = exc
                    futures.append(None)
                    continue
                job_log.debug(
                    "Engine sequence complete",
                    {"scatter": list(scatter.shape), "rendered": [rendered.cols, rendered.rows]},
                )
                futures.append(pool.submit(self._form, params, scatter, rendered))

            for index, future in enumerate(futures):
                if future is None:
                    results.append(None)
                    continue
                try:
                    results.append(future.result())
                except FormationError as exc:
                    logger.bind(job=index).error("Image formation failed", {"error": str(exc)})
                    failures[index] = exc
                    results.append(None)

        if self._sink is not None:
            for result in results:
                if result is not None:
                    present(result.raster, self._sink)

        logger.info("Batch finished", {"jobs": len(jobs), "failed": len(failures)})
        if failures:
            raise RunAborted(results, failures)
        return results  # type: ignore[return-value]

    def export_all(
        self,
        results: list[SimulationResult | None],
        directory: str | Path,
        fmt: str = "png",
        prefix: str = "job",
    ) -> list[ExportError | None]:
        """Export every result; one entry per result, ``None`` on success.

        Export failures are reported per result and never discard it.
        Aborted positions (``None``) are skipped and keep their index in
        the file names of the others.
        """
        directory = Path(directory)
        suffix = "tif" if fmt == "tiff" else fmt
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            error = ExportError.io(f"Cannot create {directory}: {exc}")
            logger.error("Export failed", {"directory": str(directory), "error": str(exc)})
            return [error for _ in results]

        def export_one(item: tuple[int, SimulationResult | None]) -> ExportError | None:
            index, result = item
            if result is None:
                return None
            job_log = logger.bind(job=index, mode=result.params.mode)
            path = directory / f"{prefix}_{index:03d}.{suffix}"
            try:
                result.save(path, fmt=fmt)
            except ExportError as exc:
                job_log.error("Export failed", {"path": str(path), "error": str(exc)})
                return exc
            job_log.info("Exported raster", {"path": str(path)})
            return None

        with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="semsim-export") as pool:
            return list(pool.map(export_one, enumerate(results)))


__all__ = ["JobManager"]
