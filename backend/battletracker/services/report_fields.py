"""
Battle Report Sections

Beyond the outcome, a report may carry a narrative, injuries, notable events,
loot and a resources tally. Each round switches these sections on or off in
BattleRound.report_fields_config; a report that fills a section the round
does not collect is rejected. Attachments and points earned are always
accepted.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from battletracker.errors import ValidationError
from battletracker.models.battle_round import default_report_fields_config

# config toggle -> report attribute it governs
SECTION_ATTRIBUTES = {
    "narrative": "narrative",
    "injuries": "injuries",
    "events": "notable_events",
    "loot": "loot_found",
    "resources": "resources",
}


@dataclass
class ReportDetails:
    points_earned: int = 0
    injuries: List[Dict[str, Any]] = field(default_factory=list)
    notable_events: List[Dict[str, Any]] = field(default_factory=list)
    loot_found: List[Dict[str, Any]] = field(default_factory=list)
    resources: Dict[str, Any] = field(default_factory=dict)
    attachments: List[Dict[str, Any]] = field(default_factory=list)

    def filled_sections(self) -> List[str]:
        return [
            name
            for name in ("injuries", "notable_events", "loot_found", "resources", "attachments")
            if getattr(self, name)
        ]


def normalise_report_fields_config(config: Optional[Dict[str, Any]]) -> Dict[str, bool]:
    """Merge a partial config over the defaults; unknown keys and non-booleans are rejected."""
    merged = default_report_fields_config()
    problems = []
    for key, value in (config or {}).items():
        if key not in merged:
            problems.append(f"unknown report section '{key}'")
        elif not isinstance(value, bool):
            problems.append(f"'{key}' must be a boolean (got {value!r})")
        else:
            merged[key] = value
    if problems:
        raise ValidationError("Invalid report fields config", details=problems)
    return merged


def check_report_sections(
    config: Optional[Dict[str, Any]], narrative: Optional[str], details: ReportDetails
) -> Dict[str, bool]:
    """Reject content in switched-off sections; returns the effective config."""
    enabled = normalise_report_fields_config(config)
    problems = []
    for toggle, attribute in SECTION_ATTRIBUTES.items():
        if enabled[toggle]:
            continue
        value = narrative if attribute == "narrative" else getattr(details, attribute)
        if isinstance(value, str):
            value = value.strip()
        if value:
            problems.append(f"{attribute} is not collected in this round")
    if problems:
        raise ValidationError("Report contains sections this round does not collect", details=problems)
    return enabled
