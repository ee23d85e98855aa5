"""
Reference Extraction Backend Application.

A FastAPI service that extracts bibliographic references from PDF documents
using an LLM, deduplicates them into a persistent master table and enriches
first authors with institutional affiliations.
"""

__version__ = "1.0.0"
