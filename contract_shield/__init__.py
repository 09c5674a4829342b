"""
Contract Shield - LLM contract risk analysis with a local history and usage quota.
"""

__version__ = "1.0.0"
