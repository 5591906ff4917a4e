"""
AutoSPN - SQL Server Kerberos SPN checker.
"""

from autospn.interface.cli import main


if __name__ == "__main__":
    main()
