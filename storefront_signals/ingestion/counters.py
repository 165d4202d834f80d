"""
Entity Counter Sink

Mirrors event counts onto catalog entities (product views, banner
clicks...) for fast reads. Best-effort: the event log stays authoritative.
"""

from typing import Dict, Optional, Tuple

import structlog

from storefront_signals.catalog.store import CatalogStore
from storefront_signals.ingestion.events import counter_family

logger = structlog.get_logger(__name__)

# (entity_type, counter family) -> entity counter column
COUNTER_TARGETS: Dict[Tuple[str, str], str] = {
    ("product", "views"): "total_views",
    ("category", "views"): "total_views",
    ("banner", "clicks"): "clicks",
    ("banner", "impressions"): "impressions",
}


class EntityCounterSink:
    """Applies atomic counter increments onto catalog entities"""

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog

    async def apply(
        self,
        entity_type: str,
        entity_id: str,
        event_type: str,
        amount: int = 1,
    ) -> Optional[str]:
        """
        Increment the counter an event maps to.

        Returns:
            The counter column updated, or None when the event maps to none
            or the entity no longer exists
        """
        family = counter_family(event_type)
        if family is None:
            return None
        column = COUNTER_TARGETS.get((entity_type, family))
        if column is None:
            return None

        matched = await self.catalog.increment_counter(entity_type, entity_id, column, amount)
        if not matched:
            logger.debug(
                "Counter target missing",
                entity_type=entity_type,
                entity_id=entity_id,
                counter=column,
            )
            return None
        return column
