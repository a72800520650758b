"""
Registry of bulk exchangers, keyed by BULK_MODE.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from bulk_worker.config import Settings, get_settings
from bulk_worker.exchangers.abstract import BulkExchanger
from bulk_worker.exchangers.chunked import ChunkedBulkExchanger
from bulk_worker.exchangers.copy import CopyBulkExchanger


def _exchanger_factories(settings: Settings) -> Dict[str, Callable[[], BulkExchanger]]:
    """Registry of available exchangers."""
    return {
        "copy": lambda: CopyBulkExchanger(),
        "chunked": lambda: ChunkedBulkExchanger(chunk_size=settings.bulk_chunk_size),
    }


def available_exchangers() -> List[str]:
    """List available exchanger names."""
    return sorted(_exchanger_factories(get_settings()).keys())


def create_exchanger(
    mode: Optional[str] = None, settings: Optional[Settings] = None
) -> BulkExchanger:
    settings = settings or get_settings()
    name = mode or settings.bulk_mode
    factories = _exchanger_factories(settings)
    if name not in factories:
        raise ValueError(f"Unknown bulk mode '{name}'. Available: {', '.join(sorted(factories))}")
    return factories[name]()


__all__ = ["available_exchangers", "create_exchanger"]
