"""
Infrastructure layer - SQL Server, PowerShell, directory and configuration access.

Modules are imported directly (``autospn.infrastructure.topology`` etc.) so
that the ODBC driver manager is only loaded when a SQL connection is made.
"""
