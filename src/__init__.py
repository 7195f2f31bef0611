"""
Pondok Ledger - Source Package

Income and expense bookkeeping for a pondok pesantren treasury, with
monthly and annual reports exported as PDF.

DESIGN PRINCIPLES:
1. Aggregation is pure: snapshot in, summary out
2. Fail early, fail visibly
3. No silent corrections
4. Every change to the books is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Pondok Ledger Team"
