"""FTS5 search index shared by todos and notes.

Index writes run inside the caller's session so they commit (or roll
back) together with the primary-table write. Queries degrade to a LIKE
scan when FTS5 rejects them, and a corrupted index is rebuilt once.
"""
import logging
import re
import sqlite3
from typing import Any, Callable, List, Optional, Union

from sqlalchemy import text
from sqlalchemy.exc import DatabaseError as SQLAlchemyDatabaseError
from sqlalchemy.exc import OperationalError as SQLAlchemyOperationalError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from andtask.config import MAX_SEARCH_LIMIT
from andtask.exceptions import ErrorCode, IndexSyncError, SearchError
from andtask.models.db_models import SEARCH_TABLE, rebuild_search_index
from andtask.models.schema import ItemType, SearchResult
from andtask.utils import display_title, escape_like_pattern

logger = logging.getLogger(__name__)

FTS5_KEYWORDS = {"AND", "OR", "NOT", "NEAR"}


class SearchIndex:
    """Full-text index over todos and notes.

    Args:
        engine: SQLAlchemy engine used for database access.
        session_factory: Callable returning a context-manager session.
        limit: Maximum results per search, capped at 50.
    """

    def __init__(
        self,
        engine: Any,
        session_factory: Callable,
        limit: int = MAX_SEARCH_LIMIT,
    ) -> None:
        self.engine = engine
        self._session_factory = session_factory
        self.limit = min(limit, MAX_SEARCH_LIMIT)
        self.available: bool = True

    # ------------------------------------------------------------------
    # Entry maintenance (caller owns the transaction)
    # ------------------------------------------------------------------

    def add_entry(
        self,
        session: Session,
        item_type: ItemType,
        item_id: Union[str, int],
        content: str,
        title: Optional[str] = None,
    ) -> None:
        """Insert the index entry for a new record."""
        self._execute(
            session,
            "add",
            item_type,
            item_id,
            f"INSERT INTO {SEARCH_TABLE} (item_type, item_id, title, content) "
            "VALUES (:item_type, :item_id, :title, :content)",
            {"title": title, "content": content},
        )

    def update_entry(
        self,
        session: Session,
        item_type: ItemType,
        item_id: Union[str, int],
        content: str,
        title: Optional[str] = None,
    ) -> None:
        """Mirror new content (and title, when given) into an existing entry."""
        if title is None:
            sql = (
                f"UPDATE {SEARCH_TABLE} SET content = :content "
                "WHERE item_type = :item_type AND item_id = :item_id"
            )
        else:
            sql = (
                f"UPDATE {SEARCH_TABLE} SET title = :title, content = :content "
                "WHERE item_type = :item_type AND item_id = :item_id"
            )
        self._execute(
            session, "update", item_type, item_id, sql,
            {"title": title, "content": content},
        )

    def delete_entry(
        self,
        session: Session,
        item_type: ItemType,
        item_id: Union[str, int],
    ) -> None:
        """Remove the index entry of a deleted record."""
        self._execute(
            session,
            "delete",
            item_type,
            item_id,
            f"DELETE FROM {SEARCH_TABLE} "
            "WHERE item_type = :item_type AND item_id = :item_id",
            {},
        )

    @staticmethod
    def _execute(
        session: Session,
        operation: str,
        item_type: ItemType,
        item_id: Union[str, int],
        sql: str,
        params: dict,
    ) -> None:
        params = {**params, "item_type": item_type.value, "item_id": str(item_id)}
        try:
            session.execute(text(sql), params)
        except SQLAlchemyError as e:
            logger.error(
                f"Search index {operation} failed for {item_type.value} {item_id}: {e}"
            )
            raise IndexSyncError(
                f"Failed to {operation} search index entry",
                item_type=item_type.value,
                item_id=item_id,
                operation=operation,
                original_error=e,
            ) from e

    # ------------------------------------------------------------------
    # Public query API
    # ------------------------------------------------------------------

    def search(self, query: str, limit: Optional[int] = None) -> List[SearchResult]:
        """Ranked full-text search over the index.

        A blank query returns an empty list without touching the database.

        Args:
            query: Search text. Plain words must all match, in any order; FTS5
                syntax (AND/OR/NOT/NEAR, quotes, prefix*, column:) is
                passed through.
            limit: Maximum results, never more than 50.

        Returns:
            Results ordered by bm25 rank, most relevant first.
        """
        if not query or not query.strip():
            return []

        limit = min(limit or self.limit, MAX_SEARCH_LIMIT)
        return self._search(query, limit, retry_on_corruption=True)

    def _search(
        self, query: str, limit: int, retry_on_corruption: bool
    ) -> List[SearchResult]:
        if not self.available:
            logger.debug("FTS5 unavailable, using fallback search")
            return self._fallback_text_search(query, limit)

        if self._should_escape(query):
            match_query = self._escape_query(query)
        else:
            match_query = query

        sql = text(f"""
            SELECT item_type, item_id, content, bm25({SEARCH_TABLE}) AS rank
            FROM {SEARCH_TABLE}
            WHERE {SEARCH_TABLE} MATCH :query
            ORDER BY rank
            LIMIT :limit
        """)

        with self._session_factory() as session:
            try:
                rows = session.execute(
                    sql, {"query": match_query, "limit": limit}
                ).fetchall()

            except (sqlite3.OperationalError, SQLAlchemyOperationalError) as e:
                logger.warning(
                    f"FTS5 query failed for '{query}': {e}. Using fallback search."
                )
                return self._fallback_text_search(query, limit)

            except (sqlite3.DatabaseError, SQLAlchemyDatabaseError) as e:
                error_msg = str(e).lower()
                if "malformed" in error_msg or "corrupt" in error_msg:
                    logger.error(
                        f"Search index corruption detected: {e}. Attempting rebuild..."
                    )
                    if retry_on_corruption and self._attempt_recovery():
                        logger.info("Search index rebuilt, retrying search")
                        return self._search(query, limit, retry_on_corruption=False)
                    logger.error(
                        "Search index recovery failed. Disabling FTS5 for this session."
                    )
                    self.available = False
                    return self._fallback_text_search(query, limit)
                logger.error(f"FTS5 database error: {e}. Using fallback search.")
                return self._fallback_text_search(query, limit)

        return [self._row_to_result(row[0], row[1], row[2], row[3]) for row in rows]

    def rebuild(self) -> int:
        """Rebuild the index from the todos and notes tables."""
        count = rebuild_search_index(self.engine)
        logger.info(f"Search index rebuilt with {count} entries")
        return count

    def reset_availability(self) -> bool:
        """Re-enable FTS5 after a manual repair."""
        try:
            with self._session_factory() as session:
                session.execute(
                    text(f"INSERT INTO {SEARCH_TABLE}({SEARCH_TABLE}) VALUES('integrity-check')")
                )
            self.available = True
            logger.info("FTS5 availability reset, FTS5 is now enabled")
            return True
        except SQLAlchemyError as e:
            logger.error(f"FTS5 still unavailable: {e}")
            self.available = False
            return False

    # ------------------------------------------------------------------
    # Query escaping helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _should_escape(query: str) -> bool:
        """Auto-detect whether a query needs FTS5 escaping."""
        words = query.upper().split()
        if any(kw in words for kw in FTS5_KEYWORDS):
            return False
        if query.count('"') >= 2:
            return False
        if re.search(r"\b\w+\*", query):
            return False
        if re.search(r"\b\w+:", query):
            return False
        return True

    @staticmethod
    def _escape_query(query: str) -> str:
        """Quote each word as its own FTS5 string.

        Adjacent strings are ANDed, so word order and distance do not matter.
        """
        words = [re.sub(r"[*^]", "", w) for w in query.split()]
        tokens = ['"' + w.replace('"', '""') + '"' for w in words if w]
        return " ".join(tokens) or '""'

    @staticmethod
    def _row_to_result(
        item_type: str, item_id: str, content: Optional[str], rank: float
    ) -> SearchResult:
        content = content or ""
        return SearchResult(
            type=ItemType(item_type),
            id=str(item_id),
            title=display_title(content),
            content=content,
            rank=rank,
        )

    # ------------------------------------------------------------------
    # Fallback & recovery
    # ------------------------------------------------------------------

    def _fallback_text_search(self, query: str, limit: int) -> List[SearchResult]:
        """LIKE-based fallback when FTS5 rejects the query or is unavailable."""
        search_term = f"%{escape_like_pattern(query.strip())}%"

        try:
            with self._session_factory() as session:
                sql = text(f"""
                    SELECT item_type, item_id, content
                    FROM {SEARCH_TABLE}
                    WHERE content LIKE :term ESCAPE '\\'
                    LIMIT :limit
                """)
                rows = session.execute(
                    sql, {"term": search_term, "limit": limit}
                ).fetchall()
        except SQLAlchemyError as e:
            raise SearchError(
                f"Fallback text search failed: {e}",
                query=query,
                code=ErrorCode.SEARCH_FAILED,
            ) from e

        results = [self._row_to_result(row[0], row[1], row[2], -1.0) for row in rows]
        logger.debug(
            f"Fallback search returned {len(results)} results for query '{query}'"
        )
        return results

    def _attempt_recovery(self) -> bool:
        """Attempt to recover by rebuilding the index."""
        try:
            self.rebuild()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Search index rebuild failed: {e}")
            return False
