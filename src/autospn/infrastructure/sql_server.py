"""
SQL Server connection and query execution module.

Handles:
- ODBC driver detection and fallback
- Connection string building
- Parameterised query execution
"""

import logging
from typing import Any, Dict, List, Sequence

import pyodbc

from autospn.domain.errors import SqlQueryError


logger = logging.getLogger(__name__)

PREFERRED_DRIVERS = [
    "ODBC Driver 18 for SQL Server",
    "ODBC Driver 17 for SQL Server",
    "ODBC Driver 13 for SQL Server",
    "ODBC Driver 11 for SQL Server",
]

FALLBACK_DRIVERS = [
    "SQL Server Native Client 11.0",
    "SQL Server Native Client 10.0",
    "SQL Server",
]


class SqlConnector:
    """
    SQL Server connection manager.

    Opens a short-lived connection per query against ``master``.
    """

    def __init__(self, server_instance: str, auth: str = "integrated",
                 username: str | None = None, password: str | None = None,
                 connect_timeout: int = 30):
        """
        Initialize SQL connector.

        Args:
            server_instance: Server instance string (e.g., "SERVER\\INSTANCE" or "SERVER,PORT")
            auth: Authentication mode ('integrated' or 'sql')
            username: SQL username (required if auth='sql')
            password: SQL password (required if auth='sql')
            connect_timeout: Connection timeout in seconds
        """
        self.server_instance = server_instance
        self.auth = auth.lower()
        self.username = username
        self.password = password
        self.connect_timeout = connect_timeout
        self._connection_string: str | None = None

        logger.debug("SqlConnector initialized for %s (auth=%s)", server_instance, self.auth)

    def _detect_odbc_driver(self) -> str:
        """
        Detect best available ODBC driver.

        Raises:
            SqlQueryError: If no suitable driver found
        """
        drivers = pyodbc.drivers()
        logger.debug("Available ODBC drivers: %s", drivers)

        for driver in PREFERRED_DRIVERS:
            if driver in drivers:
                logger.debug("Using ODBC driver: %s", driver)
                return driver

        for driver in FALLBACK_DRIVERS:
            if driver in drivers:
                logger.warning("Using fallback ODBC driver: %s", driver)
                return driver

        raise SqlQueryError("No SQL Server ODBC driver found. Please install ODBC Driver 17 or 18.")

    def build_connection_string(self) -> str:
        """Build (and cache) the ODBC connection string."""
        if self._connection_string:
            return self._connection_string

        driver = self._detect_odbc_driver()

        parts = [
            f"DRIVER={{{driver}}}",
            f"SERVER={self.server_instance}",
            "DATABASE=master",
            f"TIMEOUT={self.connect_timeout}",
            "Encrypt=no",
            "TrustServerCertificate=yes",
        ]

        if self.auth == "integrated":
            parts.append("Trusted_Connection=yes")
        else:
            if not self.username or not self.password:
                raise ValueError("Username and password required for SQL authentication")
            parts.append(f"UID={self.username}")
            parts.append(f"PWD={self.password}")

        self._connection_string = ";".join(parts)
        logger.debug("Connection string built (credentials masked)")
        return self._connection_string

    def execute_query(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """
        Execute SQL query and return results as list of dictionaries.

        Args:
            query: SQL query string, ``?`` placeholders for parameters
            params: Positional query parameters

        Raises:
            SqlQueryError: If connection or query execution fails
        """
        conn_str = self.build_connection_string()

        try:
            with pyodbc.connect(conn_str, timeout=self.connect_timeout) as conn:
                cursor = conn.cursor()
                cursor.execute(query, *params)
                columns = [column[0] for column in cursor.description] if cursor.description else []
                rows = cursor.fetchall()
        except pyodbc.Error as e:
            raise SqlQueryError(f"{self.server_instance}: {e}") from e

        results = []
        for row in rows:
            row_dict = {}
            for i, column in enumerate(columns):
                value = row[i]
                if value is None or isinstance(value, (str, int, float, bool)):
                    row_dict[column] = value
                else:
                    row_dict[column] = str(value)
            results.append(row_dict)

        logger.debug("Query returned %d rows, %d columns", len(results), len(columns))
        return results
