from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Sequence


@dataclass(frozen=True)
class Dataset:
    name: str
    record_type: type
    loader: Callable[[], Sequence[Any]]


_datasets: dict[str, Dataset] = {}
_lock = Lock()


def register_dataset(name: str, record_type: type, loader: Callable[[], Sequence[Any]]) -> Dataset:
    key = str(name or "").strip().lower()
    if not key:
        raise ValueError("dataset name is required")
    dataset = Dataset(name=key, record_type=record_type, loader=loader)
    with _lock:
        _datasets[key] = dataset
    return dataset


def get_dataset(name: str) -> Dataset | None:
    with _lock:
        return _datasets.get(str(name or "").strip().lower())


def list_datasets() -> list[str]:
    with _lock:
        return sorted(_datasets)
