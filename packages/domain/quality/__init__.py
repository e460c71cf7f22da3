"""
Quality Module - Validation and auto-processing of categorized receipts

Example flow:
- History loaded once → validator checks totals, new items, pattern breaks
- Validator passes → auto-processor posts confident items to the budget
- Validator fails → every item waits for the user
"""

from packages.domain.quality.auto_processor import AutoProcessor, auto_processor, decide
from packages.domain.quality.history import HistoryLoader, build_user_history, history_loader
from packages.domain.quality.schemas import (
    IssueType,
    ProcessingPreferences,
    ProcessingResult,
    Severity,
    UserHistory,
    ValidationIssue,
    ValidationResult,
)
from packages.domain.quality.validator import (
    QualityValidator,
    create_validation_summary,
    quality_validator,
)

__all__ = [
    'AutoProcessor',
    'auto_processor',
    'decide',
    'HistoryLoader',
    'build_user_history',
    'history_loader',
    'IssueType',
    'ProcessingPreferences',
    'ProcessingResult',
    'Severity',
    'UserHistory',
    'ValidationIssue',
    'ValidationResult',
    'QualityValidator',
    'create_validation_summary',
    'quality_validator',
]
