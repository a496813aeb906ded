"""
Audit trail application.

Append-only, queryable record of every security-relevant event.
"""
