# ==============================================
# docrepair: Document Field Normalizer
# ==============================================
#
# Package Structure (3 Topics + Orchestrator):
#
# docrepair/
# ├── normalization/    # Topic 1: Classify values, apply per-kind field rules
# ├── analysis/         # Topic 2: Plan changes over a collection snapshot
# ├── storage/          # Topic 3: MongoDB access, chunked commits, backups
# ├── config.py         # Configuration management
# ├── orchestrator.py   # Per-collection run state machine
# ├── reporting.py      # Console preview / summary formatting
# └── cli.py            # Command line entry point
#
# ==============================================

__version__ = "0.1.0"
