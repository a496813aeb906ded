"""
Break-glass override application.

Time-bounded, single-use emergency permission grants.
"""
