"""
Branch portal: branch-scoped trader records, CSV bulk import/export and
AI-assisted branch insights.
"""

__version__ = "0.1.0"
