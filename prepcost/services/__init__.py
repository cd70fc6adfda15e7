"""Services package - costing engine and persistence for Prep Cost.

Architecture:
- Pure calculators: unit conversion, yield validation, cost percentages, diff
- Save pipeline: SaveOrchestrator driven by an EditSession
- Stores: Protocol interfaces with bundled SQLAlchemy implementations
- Transactions: Managed via session_scope() context manager
- Exceptions: Consistent error handling via ServiceError hierarchy

Service Modules:
- unit_converter: Unit tables and gram normalization
- yield_service: Recipe totals and yield enforcement
- cost_percentage_service: Labor / COG / LCOG percentages
- recipe_diff_service: Baseline vs. edited recipe graph
- save_orchestrator: One save run, with rollback and refetch
- edit_session: Load, edit, cancel and save
- stores: Store protocols and SQL implementations
- change_history_service: Deprecated-item history file

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- logging_utils: Service loggers and structured operation logs
"""

# Service modules
from . import (
    database,
    unit_converter,
    yield_service,
    cost_percentage_service,
    recipe_diff_service,
    stores,
    change_history_service,
    save_orchestrator,
    edit_session,
)

from .exceptions import (
    ServiceError,
    ItemNotFound,
    ValidationError,
    YieldValidationError,
    SaveCancelled,
    SaveInProgress,
    PermissionDenied,
    DatabaseError,
    SaveError,
)

from .edit_session import EditSession
from .save_orchestrator import SaveOrchestrator
from .recipe_diff_service import diff
from .stores import (
    SqlItemStore,
    SqlRecipeLineStore,
    SqlCostService,
    SqlValidationSettings,
    SqlPermissionLookup,
)
from .change_history_service import JsonChangeHistoryRecorder

__all__ = [
    "database",
    "unit_converter",
    "yield_service",
    "cost_percentage_service",
    "recipe_diff_service",
    "stores",
    "change_history_service",
    "save_orchestrator",
    "edit_session",
    "ServiceError",
    "ItemNotFound",
    "ValidationError",
    "YieldValidationError",
    "SaveCancelled",
    "SaveInProgress",
    "PermissionDenied",
    "DatabaseError",
    "SaveError",
    "EditSession",
    "SaveOrchestrator",
    "diff",
    "SqlItemStore",
    "SqlRecipeLineStore",
    "SqlCostService",
    "SqlValidationSettings",
    "SqlPermissionLookup",
    "JsonChangeHistoryRecorder",
]
