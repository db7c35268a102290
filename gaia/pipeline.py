"""Pipeline orchestrator: fetch → dispatch → compute → aggregate → persist."""

from __future__ import annotations

import itertools
import logging
import queue
import threading
import time
from collections import defaultdict
from typing import Any, Callable, Iterable, Sequence

from gaia.config import AppConfig
from gaia.errors import GenerationError, PersistenceError
from gaia.products import change as change_products
from gaia.products import cover as cover_products
from gaia.products.models import Pixel, PixelInputs, ProductValue, WorkItem, WorkResult
from gaia.storage.store import Store
from gaia.util import flatten_values, to_ordinal, to_yyyy_mm_dd

logger = logging.getLogger(__name__)

_STOP = object()


def dispatch(dates: Iterable[int], pixels: Iterable[Pixel]) -> list[WorkItem]:
    """Return one work item per (date, pixel) combination, dates outermost."""
    return [WorkItem(date=d, pixel=p) for d, p in itertools.product(dates, pixels)]


class WorkerPool:
    """Fixed number of worker threads sharing a work queue and a result queue.

    Every submitted item yields exactly one WorkResult: exceptions raised by
    the operation are captured on the result instead of killing the worker.
    """

    def __init__(self, operation: Callable[[WorkItem], ProductValue], worker_count: int):
        if worker_count < 1:
            raise ValueError(f"worker_count must be positive, got {worker_count}")
        self._operation = operation
        self._worker_count = worker_count
        self._in: queue.Queue = queue.Queue()
        self._out: queue.Queue = queue.Queue()
        self._threads: list[threading.Thread] = []
        self._running = False

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for i in range(self._worker_count):
            thread = threading.Thread(target=self._work_loop, name=f"gaia-worker-{i}",
                                      daemon=True)
            thread.start()
            self._threads.append(thread)
        logger.debug("Worker pool started with %d workers", self._worker_count)

    def close(self) -> None:
        """Stop all workers once the items already queued are processed."""
        if not self._running:
            return
        for _ in self._threads:
            self._in.put(_STOP)
        for thread in self._threads:
            thread.join(timeout=10.0)
        self._threads = []
        self._running = False
        logger.debug("Worker pool stopped")

    def submit(self, items: Sequence[WorkItem]) -> threading.Thread:
        """Enqueue items from a feeder thread without waiting for completion."""
        feeder = threading.Thread(target=self._feed, args=(items,), daemon=True)
        feeder.start()
        return feeder

    def collect(self, count: int) -> list[WorkResult]:
        """Block until exactly count results have been received."""
        return [self._out.get() for _ in range(count)]

    def run(self, items: Sequence[WorkItem]) -> list[WorkResult]:
        self.start()
        try:
            self.submit(items)
            return self.collect(len(items))
        finally:
            self.close()

    def _feed(self, items: Sequence[WorkItem]) -> None:
        for item in items:
            self._in.put(item)

    def _work_loop(self) -> None:
        while True:
            item = self._in.get()
            if item is _STOP:
                return
            try:
                result = WorkResult(item=item, value=self._operation(item))
            except Exception as exc:
                result = WorkResult(item=item, error=exc)
            self._out.put(result)


def aggregate(results: Iterable[WorkResult]) -> dict[int, list[dict]]:
    """Group results by their embedded date and flatten each group."""
    groups: dict[int, list[ProductValue]] = defaultdict(list)
    for result in results:
        if result.value is not None:
            groups[result.value.date].append(result.value)
        else:
            px, py = result.item.pixel
            groups[result.item.date].append(ProductValue(
                px=px, py=py, date=result.item.date, error=str(result.error)))
    return {date: flatten_values(values) for date, values in groups.items()}


class Persister:
    """Writes one JSON blob per date through the store, with bounded retry."""

    def __init__(self, store: Store, retry_delays: Sequence[float],
                 sleep: Callable[[float], None] = time.sleep):
        self._store = store
        self._retry_delays = tuple(retry_delays)
        self._sleep = sleep

    def persist(self, product: str, cx: int, cy: int, tile: str, date: str,
                values: Any) -> str:
        """Write values for one date and return the path written."""
        path = self._store.product_path(product, cx, cy, tile, date)
        attempts = len(self._retry_delays) + 1
        attempt = 0
        while True:
            attempt += 1
            try:
                self._store.put_json(path, values)
                logger.info("Wrote %d %s values to %s", len(values), product, path)
                return path
            except Exception as exc:
                if attempt == attempts:
                    raise PersistenceError(path, attempts, str(exc)) from exc
                delay = self._retry_delays[attempt - 1]
                logger.warning("Write to %s failed (attempt %d/%d): %s; retrying in %.1fs",
                               path, attempt, attempts, exc, delay)
                self._sleep(delay)


class ProductGenerator:
    """Generates change or cover products for a chip and a set of dates."""

    PRODUCTS = ("change", "cover")

    def __init__(self, store: Store, config: AppConfig,
                 sleep: Callable[[float], None] = time.sleep):
        self._store = store
        self._config = config
        self._persister = Persister(store, config.pipeline.retry_delays, sleep=sleep)

    @property
    def config(self) -> AppConfig:
        return self._config

    def generate(self, product: str, cx: int, cy: int, tile: str,
                 dates: Sequence[str]) -> dict[str, Any]:
        """Compute and persist one product type for every pixel and date.

        Either every date is written or a single GenerationError is raised.
        """
        if product not in self.PRODUCTS:
            raise GenerationError(product, f"unknown product type {product!r}")

        logger.info("Generating %s products for chip (%d, %d), %d dates",
                    product, cx, cy, len(dates))
        try:
            ordinal_dates = list(dict.fromkeys(to_ordinal(d) for d in dates))
        except (TypeError, ValueError) as exc:
            raise GenerationError(product, f"invalid date: {exc}") from exc
        try:
            operation, pixels = self._operation(product, cx, cy)
            items = dispatch(ordinal_dates, pixels)

            started = time.monotonic()
            pool = WorkerPool(operation, self._config.pipeline.worker_count)
            results = pool.run(items)
            logger.info("Computed %d %s values in %.2fs",
                        len(results), product, time.monotonic() - started)

            self._check_failures(product, results)

            for date, values in aggregate(results).items():
                self._persister.persist(product, cx, cy, tile, to_yyyy_mm_dd(date), values)
        except GenerationError as exc:
            logger.error("%s", exc)
            raise
        except Exception as exc:
            error = GenerationError(product, f"chip ({cx}, {cy}): {exc}")
            logger.error("%s", error)
            raise error from exc

        return {"products": product, "cx": cx, "cy": cy, "dates": list(dates)}

    def _operation(self, product: str, cx: int,
                   cy: int) -> tuple[Callable[[WorkItem], ProductValue], list[Pixel]]:
        config = self._config
        grouped_segments = self._store.grouped_segments(cx, cy)
        pixels = list(grouped_segments)

        if product == "change":
            def operation(item: WorkItem) -> ProductValue:
                return change_products.products(
                    item.pixel, grouped_segments[item.pixel], item.date, config)
            return operation, pixels

        grouped_predictions = self._store.grouped_predictions(cx, cy)
        inputs = {
            p: PixelInputs(segments=grouped_segments[p],
                           predictions=grouped_predictions.get(p, []))
            for p in pixels
        }

        def operation(item: WorkItem) -> ProductValue:
            return cover_products.products(item.pixel, inputs[item.pixel], item.date, config)
        return operation, pixels

    def _check_failures(self, product: str, results: list[WorkResult]) -> None:
        failures = [r for r in results if not r.ok]
        if not failures:
            return
        if self._config.products.failure_policy == "record":
            logger.warning("%d of %d %s values failed and were recorded",
                           len(failures), len(results), product)
            return
        first = failures[0]
        raise GenerationError(product, str(first.error), pixel=first.item.pixel) from first.error
