"""
CRM Finance - Source Package

Income/expense record keeping for the CRM's member-facing pages:
list, search, per-member view, add, and reports.

DESIGN PRINCIPLES:
1. Records are validated before they reach the aggregation engine
2. Aggregation is pure - same records in, same summary out
3. Storage is swappable and owned by the composition root
4. Every mutation is auditable
"""

__version__ = "1.0.0"
__author__ = "CRM Finance Team"
