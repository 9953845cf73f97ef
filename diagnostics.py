# diagnostics.py
# ================================================================
# Per-call debug collector for the pairing parser.
# Passed into PairingFileParser.parse(); the blueprint embeds
# to_dict() in the JSON response only when ?debug=1.
# ================================================================
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Upper bound on recorded steps so a large document cannot blow up a response
MAX_STEPS = 500


class DebugCollector:
    def __init__(self, enabled: bool):
        self.enabled = enabled
        self.steps: list[str] = []
        self.rule_hits: dict[str, int] = {}
        self.skipped_lines: int = 0
        self.warnings: list[str] = []
        self.truncated: bool = False

    # ── write helpers (all no-ops when disabled) ─────────────────────────────
    def step(self, msg: str):
        if not self.enabled:
            return
        if len(self.steps) >= MAX_STEPS:
            self.truncated = True
            return
        self.steps.append(msg)
        logger.debug("[STEP] %s", msg)

    def warn(self, msg: str):
        # callers log at their own level
        if self.enabled:
            self.warnings.append(msg)

    def record_rule(self, rule: Optional[str], line_no: int, line: str):
        if not self.enabled:
            return
        if rule is None:
            self.skipped_lines += 1
            return
        self.rule_hits[rule] = self.rule_hits.get(rule, 0) + 1
        self.step(f"line {line_no}: {rule} ← {line.strip()[:80]}")

    def to_dict(self) -> dict:
        return {
            "steps": self.steps,
            "rule_hits": self.rule_hits,
            "skipped_lines": self.skipped_lines,
            "warnings": self.warnings,
            "truncated": self.truncated,
        }
