# ==============================================
# docsync: Document Store Import Engine
# ==============================================
#
# Package Structure (4 Topics + Progress + Orchestrator):
#
# docsync/
# ├── normalization/    # Topic 1: Identifiers, type mapping, flattening
# ├── analysis/         # Topic 2: Schema inference from sampled documents
# ├── storage/          # Topic 3: MongoDB source, MySQL destination, writers
# ├── persistence/      # Topic 4: Catalog tables (sources, metadata, history)
# ├── progress/         # Live progress state and reporting
# ├── config.py         # Configuration management
# ├── errors.py         # Exception hierarchy
# ├── importer.py       # One collection → one table
# ├── orchestrator.py   # One data source → all its collections
# └── cli.py            # Command line entry point
#
# ==============================================

__version__ = "0.2.0"
