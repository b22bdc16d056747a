"""
Workflow Studio — graph composition and validation for workflow templates.
"""

__version__ = "0.1.0"
