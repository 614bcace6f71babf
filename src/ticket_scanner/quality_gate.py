"""
Data-Quality Gate
Decides whether an extracted ticket is good enough to submit or must be
recaptured. Rejection is a normal result, not an error.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Union

from loguru import logger

from ticket_scanner.config import CRITICAL_FIELDS
from ticket_scanner.extractor import PLACEHOLDER, RESCAN_NEEDED, FieldResult, TicketRecord


@dataclass(frozen=True)
class QualityDecision:
    accepted: bool
    missing_fields: List[str] = field(default_factory=list)

    @property
    def missing_count(self) -> int:
        return len(self.missing_fields)

    def to_dict(self) -> Dict:
        return {"accepted": self.accepted, "missing_fields": list(self.missing_fields)}


def _is_missing(value: Union[FieldResult, str, None]) -> bool:
    if isinstance(value, FieldResult):
        value = value.render()
    value = (value or "").strip()
    return not value or value in (RESCAN_NEEDED, PLACEHOLDER)


class QualityGate:
    """
    Counts missing critical fields and rejects when there are more than
    `threshold` of them.
    """

    def __init__(self, threshold: int = 2, critical_fields: Optional[Sequence[str]] = None):
        self.threshold = threshold
        self.critical_fields = list(critical_fields) if critical_fields is not None else list(CRITICAL_FIELDS)
        logger.info(
            f"[QualityGate] threshold={self.threshold} "
            f"critical={len(self.critical_fields)} fields"
        )

    @classmethod
    def from_config(cls, config: Dict) -> "QualityGate":
        section = config.get('quality_gate', {})
        return cls(
            threshold=int(section.get('max_missing_fields', 2)),
            critical_fields=section.get('critical_fields'),
        )

    def evaluate(self, record: Union[TicketRecord, Mapping[str, str]]) -> QualityDecision:
        """
        Args:
            record: TicketRecord, or a plain dict of display strings

        Returns:
            QualityDecision listing the missing critical fields in order
        """
        missing = [name for name in self.critical_fields if _is_missing(record.get(name))]
        accepted = len(missing) <= self.threshold

        if accepted:
            logger.info(f"[QualityGate] accepted ({len(missing)} missing)")
        else:
            logger.warning(f"[QualityGate] rejected, missing: {', '.join(missing)}")
        return QualityDecision(accepted, missing)
