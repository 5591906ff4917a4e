"""
AutoSPN - SQL Server Kerberos SPN checker.

Discovers a SQL Server topology (standalone, clustered or availability
group), derives the MSSQLSvc SPNs it needs, compares them with what the
directory holds for the service account and optionally registers the
missing ones.
"""

__version__ = "1.0.0"
