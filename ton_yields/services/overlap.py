from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ton_yields.config import ExclusionRule, Settings, get_settings
from ton_yields.models import YieldRecord

logger = logging.getLogger(__name__)


class OverlapPolicy:
    """Drops a record when some rule names its provider and the rule's pattern
    occurs in the record's protocol slug (case-insensitive). Rules are
    independent, so order only matters for logging."""

    def __init__(self, rules: Iterable[ExclusionRule]):
        self.rules: List[ExclusionRule] = list(rules)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OverlapPolicy":
        settings = settings or get_settings()
        return cls(settings.OVERLAP_RULES)

    def matching_rule(self, record: YieldRecord) -> Optional[ExclusionRule]:
        protocol = (record.protocol or record.source_name).lower()
        for rule in self.rules:
            if rule.excluded_from == record.provider and rule.protocol_pattern.lower() in protocol:
                return rule
        return None

    def excludes(self, record: YieldRecord) -> bool:
        return self.matching_rule(record) is not None

    def apply(self, records: Iterable[YieldRecord]) -> List[YieldRecord]:
        kept: List[YieldRecord] = []
        dropped = 0
        for r in records:
            if self.excludes(r):
                dropped += 1
                continue
            kept.append(r)
        if dropped:
            logger.debug(f"Overlap policy dropped {dropped} records")
        return kept
