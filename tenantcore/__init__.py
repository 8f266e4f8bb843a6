"""
tenantcore

Organization-scoped data-access and authorization core for a multi-tenant
business-records platform: tenant isolation, role-based permissions,
paginated search, dependency-checked deletion and aggregate statistics.
"""

__version__ = "1.0.0"
