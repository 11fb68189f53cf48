"""
Users, store memberships, roles and permissions.

Provides:
- Global user identity with per-store memberships
- Per-store roles carrying permission sets, plus a super admin bypass
- JWT authentication and password reset
- Audit logging
"""
