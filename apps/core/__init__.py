"""
Shared plumbing: error taxonomy, logging, authentication and the DRF
permission gate.
"""
