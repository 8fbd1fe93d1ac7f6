"""Core custom exceptions for the application."""


class ReportError(Exception):
    """Base exception for report-generation errors."""


class ConfigurationError(ReportError):
    """Exception for configuration-related errors (e.g., missing templates, invalid settings)."""


class SectionGenerationError(ReportError):
    """Raised when a single section could not be generated."""


class WorkflowError(ReportError):
    """Base exception for section workflow errors."""


class WorkflowStateError(WorkflowError):
    """Raised when a transition is not allowed in the current workflow state."""


class WorkflowBusyError(WorkflowError):
    """Raised when an action arrives while another one is still outstanding."""
