# ==============================================
# TOPIC 2: CHANGE PLANNING
# ==============================================
#
# This package turns a collection snapshot into the list of
# partial updates that would bring it to canonical form.
#
# Modules:
# --------
# - records.py         → RawDocument, ChangeRecord, RunStatistics
# - change_planner.py  → Normalize each document, partition the snapshot
#
# ==============================================

from .records import ChangeRecord, RawDocument, RunStatistics
from .change_planner import ChangePlanner, plan

__all__ = ["ChangeRecord", "RawDocument", "RunStatistics", "ChangePlanner", "plan"]
