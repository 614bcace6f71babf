"""
Ticket Text Corrector
Fixes the systematic OCR misreads seen on Sri Dalada Maligawa entrance tickets.

Rules are an ordered list of (pattern, replacement) pairs applied one after
another over the whole text:
  1. Field labels       (DAT3 → DATE, T1ME → TIME, TERM1NAL [1D] → TERMINAL ID, ...)
  2. Institutional text (temple name, KANDY, SRI LANKA, FOREIGNERS, ENTRANCE, ...)
  3. Location values    (Ma1n Entrance → Main Entrance)
  4. Number fixes       (O1 → 01, LKR, HRS)
  5. Garbage tokens     (recurring artifacts of the printed logo and border)
Then whitespace is tidied and the text stripped.

Rules only ever canonicalize, and correct() repeats the rule pass until the
text stops changing, so correct(correct(t)) == correct(t).
"""

import re
from typing import Dict, List, NamedTuple, Pattern

from loguru import logger


class CorrectionRule(NamedTuple):
    label: str
    pattern: Pattern
    replacement: str


def _rule(label: str, pattern: str, replacement: str, ignore_case: bool = True) -> CorrectionRule:
    return CorrectionRule(label, re.compile(pattern, re.IGNORECASE if ignore_case else 0), replacement)


# ─── Rule table ───────────────────────────────────────────────────────────────

FIELD_LABEL_RULES = [
    _rule("DATE",              r"\bDAT[E3]\b", "DATE"),
    _rule("TIME",              r"\bT[1I!l]N[E3]\b", "TIME"),
    _rule("TIME",              r"\bT[1I!l]M[E3]\b", "TIME"),
    _rule("TIME",              r"\bTIME?\b", "TIME"),
    _rule("TERMINAL ID",       r"\bT[E3]RM[1I!l]NAL\s*[\[\(]?[1I!l]?[D0O]\]?\b", "TERMINAL ID"),
    _rule("TERMINAL ID",       r"\bTERMINAL\s*[\[\(\{]?[1I!liD0O]+[\]\)\}]?\s*:", "TERMINAL ID :"),
    _rule("LOCATION",          r"\bL[O0]CAT[1I!l][O0]N\b", "LOCATION"),
    _rule("NO. TICKETS",       r"\bN[O0][.,]?\s*T[1I!l]CK[E3]TS?\b", "NO. TICKETS"),
    _rule("TOTAL AMOUNT",      r"\bT[O0]TAL\s*AM[O0]UNT\b", "TOTAL AMOUNT"),
    _rule("TRACE NO",          r"\bTRAC[E3]\s*N[O0]\b", "TRACE NO"),
    _rule("REFFERENCE NO",     r"\bR[E3]F+[E3]R+[E3]NC[E3]\s*N[O0]\b", "REFFERENCE NO"),
    _rule("REFFERENCE NO",     r"\bR[E3]F[.,]?\s*N[O0]\b", "REFFERENCE NO"),
    _rule("TICKET AMOUNT P/P", r"\bT[1I!l]CK[E3]T\s*AM[O0]UNT\s*P/?P\b", "TICKET AMOUNT P/P"),
    _rule("#TICKETS",          r"[#H]\s*T[1I!l]CK[E3]TS?\b", "#TICKETS"),
]

INSTITUTION_RULES = [
    _rule("SRI DALADA MALIGAWA",       r"\bSR[1I!l]\s*DALADA\s*MAL[1I!l]?GAWA\b", "SRI DALADA MALIGAWA"),
    _rule("DALADA MALIGAWA",           r"\bDALADA\s*MAL[1I!l]?GAWA\b", "DALADA MALIGAWA"),
    _rule("TEMPLE OF THE TOOTH RELIC", r"\bT[E3]MPL[E3]\s*[O0]F\s*TH[E3]\s*T[O0]{2}TH\s*R[E3]L[1I!l]C\b",
          "TEMPLE OF THE TOOTH RELIC"),
    _rule("KANDY",      r"\bKANDY\b", "KANDY"),
    _rule("SRI LANKA",  r"\bSR[1I!l]\s*LANKA\b", "SRI LANKA"),
    _rule("FOREIGNERS", r"\bF[O0]R[E3][1I!l]GN[E3]RS\b", "FOREIGNERS"),
    _rule("PERSON",     r"\bP[E3]RS[O0]N\b", "PERSON"),
    _rule("ONLY",       r"\b[O0]NLY\b", "ONLY"),
    _rule("ENTRANCE",   r"\b[E3]NTRANC[E3]\b", "ENTRANCE"),
    _rule("TICKET",     r"\bT[1I!l]CK[E3]T\b", "TICKET"),
    _rule("BALANCE",    r"\bBALANC[E3]\b", "BALANCE"),
    _rule("TOTAL DEP",  r"\bT[O0]TAL\s*D[E3]P\b", "TOTAL DEP"),
]

# After ENTRANCE so the location value keeps its mixed case.
LOCATION_VALUE_RULES = [
    _rule("Main Entrance", r"\bMa[1I!l]n\s*[E3]ntranc[e3]\b", "Main Entrance"),
]

NUMBER_RULES = [
    _rule("01",  r"\b[O0]1\b", "01", ignore_case=False),
    _rule("LKR", r"\bLKR\b", "LKR"),
    _rule("HRS", r"\bHRS\b", "HRS"),
]

GARBAGE_RULES = [
    _rule("garbage", r"@ent", ""),
    _rule("garbage", r"\(\?\}[0-9]*\s*['\"]?\s*A\s*tbl%", ""),
    _rule("garbage", r"<\"/Â£'>~,,\s*\d*", ""),
    _rule("garbage", r"%\s*EE&\s*\d*", ""),
    _rule("garbage", r"<\s*ARX\s*=\s*i", ""),
    _rule("garbage", r"Y,\s*=", ""),
    _rule("garbage", r"T\s*mancrtt", ""),
    _rule("garbage", r"\[=\];?", "", ignore_case=False),
    _rule("garbage", r"\[\s*\|\s*\]", "", ignore_case=False),
]

CORRECTION_RULES: List[CorrectionRule] = (
    FIELD_LABEL_RULES
    + INSTITUTION_RULES
    + LOCATION_VALUE_RULES
    + NUMBER_RULES
    + GARBAGE_RULES
)

_HSPACE = re.compile(r"[ \t]+")
_BLANK_RUNS = re.compile(r"\n\s*\n\s*\n")

MAX_PASSES = 5


# ─── Corrector ────────────────────────────────────────────────────────────────

class TicketTextCorrector:
    """Rule-table corrector for raw ticket OCR text."""

    def __init__(self, rules: List[CorrectionRule] = None):
        self.rules = list(rules) if rules is not None else list(CORRECTION_RULES)
        logger.info(f"[Corrector] initialized with {len(self.rules)} rules")

    def _single_pass(self, text: str) -> str:
        for rule in self.rules:
            text = rule.pattern.sub(rule.replacement, text)
        text = _HSPACE.sub(" ", text)
        text = _BLANK_RUNS.sub("\n\n", text)
        return text.strip()

    def correct(self, text: str) -> str:
        """
        Apply every rule, tidy whitespace, strip.

        Args:
            text: Raw OCR text

        Returns:
            Corrected text
        """
        if not text:
            return ""

        corrected = self._single_pass(text)
        for _ in range(MAX_PASSES - 1):
            again = self._single_pass(corrected)
            if again == corrected:
                break
            corrected = again

        if corrected != text:
            logger.debug(f"[Corrector] {len(text)} → {len(corrected)} chars")
        return corrected

    def correction_report(self, text: str) -> List[Dict]:
        """
        List the rules that changed something, in the order they ran.

        Each entry: {"rule": label, "matches": count}. Rules that matched but
        replaced text with itself are not reported.
        """
        report: List[Dict] = []
        current = text or ""
        for rule in self.rules:
            updated, count = rule.pattern.subn(rule.replacement, current)
            if count and updated != current:
                report.append({"rule": rule.label, "matches": count})
            current = updated
        return report
