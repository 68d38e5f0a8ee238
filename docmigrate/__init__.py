# ==============================================
# Document Store Migration Assessment
# ==============================================
#
# Package Structure (3 analysis topics + sources + orchestrator):
#
# docmigrate/
# ├── inference/        # Topic 1: Type detection & schema inference
# ├── quality/          # Topic 2: Data-quality checks & issue aggregation
# ├── mapping/          # Topic 3: Relational mapping, shared schemas, complexity
# ├── sources/          # Sample sources (in-memory, JSON, MongoDB, HTTP)
# ├── config.py         # Configuration management
# ├── errors.py         # Error taxonomy & analysis warnings
# ├── assessment.py     # Final orchestrator class
# └── cli.py            # Command line entry point
#
# ==============================================

__version__ = "0.1.0"
