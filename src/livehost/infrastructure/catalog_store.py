from __future__ import annotations

from threading import RLock
from typing import Any, Dict, List, Optional, Protocol

from ..domain.models import LiveConfig, Product


class CatalogStore(Protocol):
    def list_products(self) -> List[Product]: ...

    def get_product(self, product_id: int) -> Optional[Product]: ...

    def add_product(self, product: Product) -> Product: ...

    def get_config(self) -> LiveConfig: ...

    def update_config(self, updates: Dict[str, Any]) -> LiveConfig: ...


class InMemoryCatalogStore:
    """Showcase products and the runtime config record.

    Reads hand out copies taken under the lock so a promotion never sees a
    half-applied update from a concurrent add.
    """

    def __init__(self, config: Optional[LiveConfig] = None) -> None:
        self._products: Dict[int, Product] = {}
        self._config = config or LiveConfig()
        self._lock = RLock()

    def list_products(self) -> List[Product]:
        with self._lock:
            return [self._products[k].model_copy() for k in sorted(self._products)]

    def get_product(self, product_id: int) -> Optional[Product]:
        with self._lock:
            product = self._products.get(product_id)
            return product.model_copy() if product else None

    def add_product(self, product: Product) -> Product:
        with self._lock:
            self._products[product.id] = product.model_copy()
            return product.model_copy()

    def get_config(self) -> LiveConfig:
        with self._lock:
            return self._config.model_copy()

    def update_config(self, updates: Dict[str, Any]) -> LiveConfig:
        with self._lock:
            merged = self._config.model_dump()
            merged.update({k: v for k, v in updates.items() if v is not None})
            self._config = LiveConfig(**merged)
            return self._config.model_copy()
