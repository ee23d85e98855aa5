"""
Routers package for FastAPI endpoints.

Organized by domain:
- extraction: PDF upload, job status, results and job history
- master: Master references table
- enhancement: First-author affiliation enhancement
"""

from . import enhancement, extraction, master

__all__ = ["enhancement", "extraction", "master"]
