"""Store interface plus a local filesystem implementation.

Input records are flat JSON arrays per chip, one element per segment or
prediction, each carrying its pixel coordinates in ``px``/``py``::

    <root>/segments/<cx>_<cy>.json
    <root>/predictions/<cx>_<cy>.json

Products are written as one JSON array per product, chip and date under
``<root>/products/``.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Iterable, Protocol

from gaia.products.models import Pixel, Prediction, Segment
from gaia.util import to_ordinal

logger = logging.getLogger(__name__)


class Store(Protocol):
    def grouped_segments(self, cx: int, cy: int) -> dict[Pixel, list[Segment]]: ...

    def grouped_predictions(self, cx: int, cy: int) -> dict[Pixel, list[Prediction]]: ...

    def product_path(self, product: str, cx: int, cy: int, tile: str, date: str) -> str: ...

    def put_json(self, path: str, value: Any) -> None: ...


def format_product_path(product: str, cx: int, cy: int, tile: str, date: str) -> str:
    """Return the relative key for a product blob."""
    return f"{tile}/{cx}/{cy}/{product}-{tile}-{cx}-{cy}-{date}.json"


def input_key(kind: str, cx: int, cy: int) -> str:
    return f"{kind}/{cx}_{cy}.json"


def group_by_pixel(records: Iterable[dict], order_key: str) -> dict[Pixel, list[dict]]:
    """Group flat records by (px, py), each group ascending by order_key."""
    groups: dict[Pixel, list[dict]] = defaultdict(list)
    for record in records:
        groups[(int(record["px"]), int(record["py"]))].append(record)
    for values in groups.values():
        values.sort(key=lambda r: to_ordinal(r[order_key]))
    return dict(groups)


class FileStore:
    """Reads chip inputs from and writes products to a local directory."""

    def __init__(self, root: str | Path):
        self._root = Path(root)
        logger.info("File store initialized: %s", self._root)

    @property
    def root(self) -> Path:
        return self._root

    def grouped_segments(self, cx: int, cy: int) -> dict[Pixel, list[Segment]]:
        return group_by_pixel(self._read(input_key("segments", cx, cy)), "sday")

    def grouped_predictions(self, cx: int, cy: int) -> dict[Pixel, list[Prediction]]:
        return group_by_pixel(self._read(input_key("predictions", cx, cy)), "pday")

    def product_path(self, product: str, cx: int, cy: int, tile: str, date: str) -> str:
        return str(self._root / "products" / format_product_path(product, cx, cy, tile, date))

    def put_json(self, path: str, value: Any) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_text(json.dumps(value))
        tmp.replace(target)
        logger.debug("Wrote %s", target)

    def _read(self, key: str) -> list[dict]:
        path = self._root / key
        if not path.exists():
            logger.warning("No input data at %s", path)
            return []
        with open(path, "r") as f:
            return json.load(f)
