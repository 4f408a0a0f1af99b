"""Operations workflow engine.

Provides the automation engine behind the operations backend:
- a registry of condition -> action rules evaluated per job
- cooldown-based deduplication backed by an append-only action log
- single-job and bulk execution with per-rule / per-job failure isolation
- JobNimbus task/note and customer message side effects
"""

__version__ = "0.1.0"

from ops_workflow_engine.engine.config import WorkflowSettings

__all__ = ["__version__", "WorkflowSettings"]
