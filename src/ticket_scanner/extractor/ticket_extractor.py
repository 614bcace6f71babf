"""
Ticket Extractor
================
Runs the FIELD_RULES table over corrected OCR text and builds a TicketRecord.

Rules for the same field are tried in table order; a later rule only runs
when the earlier ones produced nothing. Absence of a field is never an error.
"""

from typing import Dict, List, Optional, Sequence

from loguru import logger

from ticket_scanner.extractor.fields import FIELD_NAMES, FieldResult, TicketRecord
from ticket_scanner.extractor.rules import FIELD_RULES, FieldRule


class TicketExtractor:
    """Table-driven field extraction for entrance tickets."""

    def __init__(self, rules: Optional[Sequence[FieldRule]] = None):
        self.rules: List[FieldRule] = list(rules) if rules is not None else list(FIELD_RULES)

    def extract(self, text: str) -> TicketRecord:
        """
        Extract all ticket fields from corrected text.

        Args:
            text: Corrected OCR text

        Returns:
            TicketRecord with every field FOUND, NOT_FOUND or INVALID
        """
        results: Dict[str, FieldResult] = {}
        text = text or ""

        for rule in self.rules:
            current = results.get(rule.field)
            if current is not None and current.is_found:
                continue
            outcome = self._apply_rule(rule, text)
            if outcome is not None or current is None:
                results[rule.field] = outcome if outcome is not None else rule.default

        record = TicketRecord(results)
        found = sum(1 for name in FIELD_NAMES if record[name].is_found)
        logger.info(f"[Extractor] {found}/{len(FIELD_NAMES)} fields found")
        for name in FIELD_NAMES:
            logger.debug(f"[Extractor]   {name}: {record[name].status.value} '{record.value(name)}'")
        return record

    def _apply_rule(self, rule: FieldRule, text: str) -> Optional[FieldResult]:
        """First matching pattern wins. None when no pattern matches."""
        for pattern in rule.patterns:
            m = pattern.search(text)
            if not m:
                continue
            value = rule.normalize(m)
            if rule.validate is not None and not rule.validate(value):
                logger.debug(f"[Extractor] {rule.field}: '{value}' failed validation")
                return FieldResult.invalid(value)
            return FieldResult.found(value)
        return None

    def match_patterns(self, field: str, text: str) -> List[Dict]:
        """
        Report every pattern for a field and what it captured.

        Used by the debug helpers; does not affect extraction.
        """
        report: List[Dict] = []
        for rule in self.rules:
            if rule.field != field:
                continue
            for pattern in rule.patterns:
                m = pattern.search(text or "")
                report.append({
                    "pattern": pattern.pattern,
                    "matched": bool(m),
                    "match": m.group(0) if m else None,
                    "groups": list(m.groups()) if m else [],
                })
        return report
