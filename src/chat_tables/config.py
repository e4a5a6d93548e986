"""Tunable thresholds, timings and repair toggles for the detection engine.

Defaults can be overridden through ``CHAT_TABLES_*`` variables in the
environment or in a ``.env`` file at the project root.

The confidence numbers (acceptance 0.6, caps 0.9/0.95, wrapper 0.1) were
chosen empirically against live chat pages and have no derivation beyond
that; treat them as calibration points, not as optimal values.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT = Path(__file__).parent.parent.parent.resolve()
load_dotenv(ROOT / ".env")


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


class DetectionConfig(BaseModel):
    """Scores, thresholds and timings shared by the detector, registry and scheduler."""

    # Confidence scoring
    acceptance_threshold: float = 0.6
    html_confidence: float = 0.95
    markdown_confidence: float = 0.9
    markdown_no_separator_confidence: float = 0.7
    div_role_confidence: float = 0.85
    text_confidence_cap: float = 0.9
    wrapper_confidence: float = 0.1

    # Duplicate detection: compare this many normalised leading characters
    duplicate_prefix_chars: int = 100
    duplicate_min_chars: int = 50

    # Text-table size limits (characters)
    text_min_chars: int = 50
    text_max_chars: int = 2000

    # Timings (seconds)
    debounce_seconds: float = 0.8
    min_scan_interval_seconds: float = 1.0
    cleanup_interval_seconds: float = 5.0

    # Table-count change at or below which a rescan stays incremental
    incremental_delta_limit: int = 1

    # Class/id marker carried by this engine's own UI elements
    ui_marker: str = "chat-tables"

    @classmethod
    def from_env(cls) -> "DetectionConfig":
        """Build a config, letting ``CHAT_TABLES_*`` environment variables override defaults."""
        defaults = cls()
        return cls(
            acceptance_threshold=_env_float("CHAT_TABLES_ACCEPTANCE_THRESHOLD", defaults.acceptance_threshold),
            html_confidence=_env_float("CHAT_TABLES_HTML_CONFIDENCE", defaults.html_confidence),
            markdown_confidence=_env_float("CHAT_TABLES_MARKDOWN_CONFIDENCE", defaults.markdown_confidence),
            markdown_no_separator_confidence=_env_float(
                "CHAT_TABLES_MARKDOWN_NO_SEPARATOR_CONFIDENCE", defaults.markdown_no_separator_confidence
            ),
            div_role_confidence=_env_float("CHAT_TABLES_DIV_ROLE_CONFIDENCE", defaults.div_role_confidence),
            text_confidence_cap=_env_float("CHAT_TABLES_TEXT_CONFIDENCE_CAP", defaults.text_confidence_cap),
            wrapper_confidence=_env_float("CHAT_TABLES_WRAPPER_CONFIDENCE", defaults.wrapper_confidence),
            duplicate_prefix_chars=_env_int("CHAT_TABLES_DUPLICATE_PREFIX_CHARS", defaults.duplicate_prefix_chars),
            duplicate_min_chars=_env_int("CHAT_TABLES_DUPLICATE_MIN_CHARS", defaults.duplicate_min_chars),
            text_min_chars=_env_int("CHAT_TABLES_TEXT_MIN_CHARS", defaults.text_min_chars),
            text_max_chars=_env_int("CHAT_TABLES_TEXT_MAX_CHARS", defaults.text_max_chars),
            debounce_seconds=_env_float("CHAT_TABLES_DEBOUNCE_SECONDS", defaults.debounce_seconds),
            min_scan_interval_seconds=_env_float("CHAT_TABLES_MIN_SCAN_INTERVAL_SECONDS", defaults.min_scan_interval_seconds),
            cleanup_interval_seconds=_env_float("CHAT_TABLES_CLEANUP_INTERVAL_SECONDS", defaults.cleanup_interval_seconds),
            incremental_delta_limit=_env_int("CHAT_TABLES_INCREMENTAL_DELTA_LIMIT", defaults.incremental_delta_limit),
            ui_marker=os.getenv("CHAT_TABLES_UI_MARKER", defaults.ui_marker),
        )


class RepairOptions(BaseModel):
    """Independent toggles for the four structure-repair steps, applied in this order."""

    fix_merged_cells: bool = True
    restore_headers: bool = True
    normalize_columns: bool = True
    validate_structure: bool = True

    @classmethod
    def from_env(cls) -> "RepairOptions":
        return cls(
            fix_merged_cells=_env_bool("CHAT_TABLES_FIX_MERGED_CELLS", True),
            restore_headers=_env_bool("CHAT_TABLES_RESTORE_HEADERS", True),
            normalize_columns=_env_bool("CHAT_TABLES_NORMALIZE_COLUMNS", True),
            validate_structure=_env_bool("CHAT_TABLES_VALIDATE_STRUCTURE", True),
        )
