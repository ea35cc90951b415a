"""
Core constants — **Single Source of Truth** for project-wide magic numbers.

Any formula or business rule that references a numeric constant should
import it from here instead of hardcoding.  This avoids drift between
apps that use the same value.
"""

# ── Case numbering ──────────────────────────────────────────────────
# Generated case numbers look like ``20240115_K3ZP0QW7A``:
#     <case date as YYYYMMDD> "_" <CASE_NUMBER_SUFFIX_LENGTH random chars>
CASE_NUMBER_DATE_FORMAT: str = "%Y%m%d"
CASE_NUMBER_SUFFIX_LENGTH: int = 9
CASE_NUMBER_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

# ── Rotation ────────────────────────────────────────────────────────
# Width of the trailing window used by the default rotation strategy.
DEFAULT_ROTATION_WINDOW_DAYS: int = 30

# ── Audit ───────────────────────────────────────────────────────────
# Reason recorded on the audit row written when a case is created.
CREATION_ALLOCATION_REASON: str = "Automatic allocation on case creation"
