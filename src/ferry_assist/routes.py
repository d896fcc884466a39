"""Ferry route storage and cached lookup.

Routes live in an SQLite database keyed by the directional pair
(departure area, arrival area). The resolver keeps every found route in an
in-process cache for the lifetime of the process.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from threading import Lock

from ferry_assist.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS routes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    departure_area TEXT NOT NULL,
    arrival_area TEXT NOT NULL,
    boarding_port TEXT NOT NULL,
    landing_port TEXT NOT NULL
)
"""

_SELECT_COLUMNS = "id, departure_area, arrival_area, boarding_port, landing_port"


@dataclass(frozen=True)
class Route:
    """A ferry crossing to take when driving from one area to another."""

    id: int
    departure_area: str
    arrival_area: str
    boarding_port: str
    landing_port: str

    @classmethod
    def from_row(cls, row: sqlite3.Row | tuple) -> Route:
        """Create from a database row."""
        return cls(
            id=int(row[0]),
            departure_area=row[1],
            arrival_area=row[2],
            boarding_port=row[3],
            landing_port=row[4],
        )


class RouteStore:
    """SQLite-backed ferry route table.

    The connection is not assumed to be safe for concurrent use; callers
    that share a store across threads serialize access themselves (see
    RouteResolver).

    Example:
        >>> store = RouteStore("data/ferry_routes.db")
        >>> store.open(create=True)
        >>> store.add_route("Calais", "Dover", "Calais", "Dover")
        >>> store.get_route("Calais", "Dover")
    """

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    @property
    def db_path(self) -> Path:
        """Path to the database file."""
        return self._db_path

    def open(self, create: bool = False) -> None:
        """Open the database connection.

        Args:
            create: Create the file and schema if missing. When False a
                missing database is a configuration error.

        Raises:
            ConfigurationError: If the database file does not exist and
                ``create`` is False.
        """
        if self._conn is not None:
            return

        if not create and not self._db_path.exists():
            raise ConfigurationError(f"Route database not found: {self._db_path}")

        if create:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            str(self._db_path),
            timeout=5.0,
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row

        if create:
            self._conn.execute(_SCHEMA)
            self._conn.commit()

        logger.debug(f"Opened route database at {self._db_path}")

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("RouteStore not open. Call open() first.")
        return self._conn

    def get_route(self, departure_area: str, arrival_area: str) -> Route | None:
        """Fetch the route for an exact (departure, arrival) pair.

        Returns:
            The route, or None if there is no matching row.
        """
        conn = self._require_conn()
        cursor = conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM routes "
            "WHERE departure_area = ? AND arrival_area = ?",
            (departure_area, arrival_area),
        )
        row = cursor.fetchone()
        return Route.from_row(row) if row is not None else None

    def add_route(
        self,
        departure_area: str,
        arrival_area: str,
        boarding_port: str,
        landing_port: str,
    ) -> Route:
        """Insert a route and return it with its assigned id."""
        conn = self._require_conn()
        cursor = conn.execute(
            "INSERT INTO routes (departure_area, arrival_area, boarding_port, landing_port) "
            "VALUES (?, ?, ?, ?)",
            (departure_area, arrival_area, boarding_port, landing_port),
        )
        conn.commit()
        return Route(
            id=int(cursor.lastrowid),
            departure_area=departure_area,
            arrival_area=arrival_area,
            boarding_port=boarding_port,
            landing_port=landing_port,
        )

    def list_routes(self) -> list[Route]:
        """Return every route ordered by id."""
        conn = self._require_conn()
        cursor = conn.execute(f"SELECT {_SELECT_COLUMNS} FROM routes ORDER BY id")
        return [Route.from_row(row) for row in cursor.fetchall()]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class RouteResolver:
    """
    Cached route lookup in front of a RouteStore.

    Only found routes are cached, and cached entries are never evicted, so
    a pair that has no route always goes back to the store.
    """

    def __init__(self, store: RouteStore) -> None:
        self._store = store
        self._cache: dict[str, Route] = {}
        self._lock = Lock()

    @staticmethod
    def cache_key(departure_area: str, arrival_area: str) -> str:
        """Cache key for a directional pair."""
        return f"{departure_area}->{arrival_area}"

    def get_route(self, departure_area: str, arrival_area: str) -> Route | None:
        """Look up the route from departure to arrival.

        Args:
            departure_area: Area the job starts in.
            arrival_area: Area the job delivers to.

        Returns:
            The route, or None if there is none (or the store failed).
        """
        key = self.cache_key(departure_area, arrival_area)

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        with self._lock:
            try:
                route = self._store.get_route(departure_area, arrival_area)
            except sqlite3.Error as e:
                logger.error(f"Route lookup failed for {key}: {e}")
                return None

            if route is not None:
                self._cache[key] = route
                logger.debug(f"Cached route {key}: {route.boarding_port} -> {route.landing_port}")

            return route

    @property
    def cache_size(self) -> int:
        """Number of cached routes."""
        return len(self._cache)
