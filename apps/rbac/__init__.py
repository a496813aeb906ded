"""
RBAC (Role-Based Access Control) application.

Provides hospital access control with:
- A registry-backed permission catalog
- Roles as named permission bundles plus direct per-user grants
- A policy resolver combining roles with break-glass overrides
"""
