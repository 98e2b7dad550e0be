"""Pipeline wiring and startup checks."""

from deal_archiver.pipeline.context import ArchiverContext, create_store
from deal_archiver.pipeline.guards import StartupGuards, run_guards

__all__ = ["ArchiverContext", "StartupGuards", "create_store", "run_guards"]
