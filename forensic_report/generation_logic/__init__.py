"""Generation logic package.

This package groups the section catalog, the sequential section workflow and
the final compilation of the report. Keeping them here allows
`forensic_report/api/routes.py` to stay minimal and focused on HTTP routing.
"""

# Re-export the static catalog; workflow helpers are imported from
# `forensic_report.generation_logic.workflow` directly.
from .static_content import SECTION_CATALOG  # noqa: F401
from .static_content import WORKFLOW_SECTIONS  # noqa: F401
from .static_content import get_section_spec  # noqa: F401
