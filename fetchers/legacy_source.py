"""
Read access to the legacy WeMeditate PostgreSQL database.

When a ``pg_dump`` archive is configured, it is restored into a throwaway
database first; :meth:`LegacySource.cleanup` drops that database again.
"""

import logging
import subprocess
from typing import Any, Dict, List, Optional, Sequence

import psycopg
from psycopg import sql
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row

from exceptions import SourceDatabaseError
from importers.id_mapping_registry import normalize_title
from models import ContentRow, PageKind, SourceRow, TranslationRow

logger = logging.getLogger('wemeditate_migrator.fetchers.legacy_source')

DEFAULT_TEMP_DATABASE = 'temp_wemeditate_import'

# Extra parent columns selected per page kind
PAGE_ATTRIBUTES = {
    PageKind.ARTICLES: ('author_id', 'article_type', 'category_id'),
}


class LegacySource:
    """Row queries against the legacy database."""

    def __init__(
        self,
        database_uri: str,
        dump_path: Optional[str] = None,
        temp_database: str = DEFAULT_TEMP_DATABASE,
        meditation_locale: str = 'en',
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize legacy source.

        Args:
            database_uri: libpq connection string or URI
            dump_path: Optional pg_dump archive to restore before reading
            temp_database: Name of the throwaway database for the restore
            meditation_locale: Locale whose meditation names are the natural keys
            logger: Optional logger instance
        """
        self.database_uri = database_uri
        self.dump_path = dump_path
        self.temp_database = temp_database
        self.meditation_locale = meditation_locale
        self.logger = logger or logging.getLogger('wemeditate_migrator.fetchers.legacy_source')

        self.conn: Optional[psycopg.Connection] = None
        self._provisioned_temp = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'LegacySource':
        source = config.get('source', {})
        locales = config.get('migration', {}).get('locales') or ['en']
        return cls(
            database_uri=source.get('database_uri'),
            dump_path=source.get('dump_path'),
            temp_database=source.get('temp_database') or DEFAULT_TEMP_DATABASE,
            meditation_locale=locales[0],
        )

    # Lifecycle

    def provision(self) -> None:
        """
        Connect to the legacy data, restoring the dump first when configured.

        Raises:
            SourceDatabaseError: If the restore or the connection fails
        """
        conninfo = self.database_uri
        if self.dump_path:
            self._restore_dump()
            conninfo = make_conninfo(self.database_uri, dbname=self.temp_database)

        try:
            self.conn = psycopg.connect(conninfo, row_factory=dict_row, autocommit=True)
        except psycopg.Error as e:
            raise SourceDatabaseError(f"Cannot connect to legacy database: {e}") from e

        self.logger.info("Connected to legacy database")

    def _restore_dump(self) -> None:
        name = sql.Identifier(self.temp_database)
        try:
            with psycopg.connect(self.database_uri, autocommit=True) as admin:
                admin.execute(sql.SQL("DROP DATABASE IF EXISTS {}").format(name))
                admin.execute(sql.SQL("CREATE DATABASE {}").format(name))
        except psycopg.Error as e:
            raise SourceDatabaseError(f"Cannot create database {self.temp_database}: {e}") from e

        self._provisioned_temp = True
        self.logger.info(f"Created database: {self.temp_database}")

        target = make_conninfo(self.database_uri, dbname=self.temp_database)
        command = ['pg_restore', '--no-owner', '--no-privileges', '-d', target, self.dump_path]
        try:
            result = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as e:
            raise SourceDatabaseError(f"Cannot run pg_restore: {e}") from e

        # pg_restore exits non-zero for ignorable errors such as missing roles
        if result.returncode != 0:
            stderr_tail = '\n'.join(result.stderr.strip().splitlines()[-5:])
            self.logger.warning(f"pg_restore reported errors (exit {result.returncode}): {stderr_tail}")

        self.logger.info(f"Restored data from: {self.dump_path}")

    def cleanup(self) -> None:
        """Close the connection and drop the temporary database. Never raises."""
        if self.conn is not None:
            try:
                self.conn.close()
                self.logger.info("Disconnected from legacy database")
            except psycopg.Error as e:
                self.logger.warning(f"Error closing legacy connection: {e}")
            self.conn = None

        if not self._provisioned_temp:
            return

        try:
            with psycopg.connect(self.database_uri, autocommit=True) as admin:
                admin.execute(
                    sql.SQL("DROP DATABASE IF EXISTS {}").format(sql.Identifier(self.temp_database))
                )
            self._provisioned_temp = False
            self.logger.info(f"Dropped database: {self.temp_database}")
        except psycopg.Error as e:
            self.logger.warning(f"Could not drop database {self.temp_database}: {e}")

    def ping(self) -> None:
        """Run ``SELECT 1``; raises SourceDatabaseError when unreachable."""
        self._query(sql.SQL("SELECT 1 AS ok"))

    def _query(self, query: sql.Composable, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        if self.conn is None:
            raise SourceDatabaseError("Legacy database is not provisioned")
        try:
            with self.conn.cursor() as cur:
                cur.execute(query, params)
                return list(cur.fetchall())
        except psycopg.Error as e:
            raise SourceDatabaseError(f"Legacy query failed: {e}") from e

    # Entity rows

    @staticmethod
    def _to_source_row(row: Dict[str, Any]) -> SourceRow:
        translations = [TranslationRow.from_dict(t) for t in (row.pop('translations', None) or []) if t]
        source_id = row.pop('id')
        return SourceRow(id=int(source_id), translations=translations, attributes=row)

    def fetch_authors(self) -> List[SourceRow]:
        rows = self._query(sql.SQL("""
            SELECT
                a.id,
                a.country_code,
                a.years_meditating,
                COALESCE(
                    json_agg(
                        json_build_object(
                            'locale', at.locale,
                            'name', at.name,
                            'title', at.title,
                            'description', at.description
                        ) ORDER BY at.locale
                    ) FILTER (WHERE at.author_id IS NOT NULL),
                    '[]'
                ) AS translations
            FROM authors a
            LEFT JOIN author_translations at ON a.id = at.author_id
            GROUP BY a.id, a.country_code, a.years_meditating
            ORDER BY a.id
        """))
        return [self._to_source_row(row) for row in rows]

    def fetch_author_images(self) -> List[Dict[str, Any]]:
        """``{id, image}`` rows for authors that have a portrait."""
        return self._query(sql.SQL("SELECT id, image FROM authors WHERE image IS NOT NULL ORDER BY id"))

    def fetch_categories(self) -> List[SourceRow]:
        rows = self._query(sql.SQL("""
            SELECT
                c.id,
                COALESCE(
                    json_agg(
                        json_build_object(
                            'locale', ct.locale,
                            'name', ct.name,
                            'slug', ct.slug
                        ) ORDER BY ct.locale
                    ) FILTER (WHERE ct.category_id IS NOT NULL),
                    '[]'
                ) AS translations
            FROM categories c
            LEFT JOIN category_translations ct ON c.id = ct.category_id
            GROUP BY c.id
            ORDER BY c.id
        """))
        return [self._to_source_row(row) for row in rows]

    def fetch_pages(self, kind: PageKind) -> List[SourceRow]:
        """
        Parent rows of one page table with their aggregated translations.

        Raises:
            ValueError: For promo pages, which have no translations table
        """
        if kind.translations_table is None:
            raise ValueError(f"{kind.value} has no translations table, use fetch_promo_pages()")

        attributes = [sql.SQL("p.{}").format(sql.Identifier(col)) for col in PAGE_ATTRIBUTES.get(kind, ())]
        group_by = sql.SQL(', ').join([sql.SQL("p.id")] + attributes)
        select = sql.SQL(', ').join([sql.SQL("p.id")] + attributes)

        query = sql.SQL("""
            SELECT
                {select},
                COALESCE(
                    json_agg(
                        json_build_object(
                            'locale', pt.locale,
                            'name', pt.name,
                            'slug', pt.slug,
                            'published_at', pt.published_at,
                            'state', pt.state
                        ) ORDER BY pt.locale
                    ) FILTER (WHERE pt.{fk} IS NOT NULL),
                    '[]'
                ) AS translations
            FROM {table} p
            LEFT JOIN {translations} pt ON p.id = pt.{fk}
            GROUP BY {group_by}
            ORDER BY p.id
        """).format(
            select=select,
            table=sql.Identifier(kind.value),
            translations=sql.Identifier(kind.translations_table),
            fk=sql.Identifier(kind.foreign_key),
            group_by=group_by,
        )
        return [self._to_source_row(row) for row in self._query(query)]

    def fetch_promo_pages(self) -> List[SourceRow]:
        """Promo pages carry a single locale on the main row."""
        rows = self._query(sql.SQL("""
            SELECT id, name, slug, published_at, state, locale
            FROM promo_pages
            ORDER BY id
        """))
        pages = []
        for row in rows:
            translation = TranslationRow.from_dict(row)
            pages.append(SourceRow(id=int(row['id']), translations=[translation]))
        return pages

    # Content rows

    def fetch_page_contents(self, kind: PageKind) -> List[ContentRow]:
        """Published (page, locale) content payloads of one page table."""
        if kind.translations_table is None:
            return self.fetch_promo_page_contents()

        query = sql.SQL("""
            SELECT pt.{fk} AS page_id, pt.locale, pt.state, pt.content
            FROM {translations} pt
            WHERE pt.content IS NOT NULL
            ORDER BY pt.{fk}, pt.locale
        """).format(
            fk=sql.Identifier(kind.foreign_key),
            translations=sql.Identifier(kind.translations_table),
        )
        return self._content_rows(self._query(query))

    def fetch_promo_page_contents(self) -> List[ContentRow]:
        rows = self._query(sql.SQL("""
            SELECT id AS page_id, locale, state, content
            FROM promo_pages
            WHERE content IS NOT NULL
            ORDER BY id
        """))
        return self._content_rows(rows)

    @staticmethod
    def _content_rows(rows: List[Dict[str, Any]]) -> List[ContentRow]:
        contents = []
        for row in rows:
            translation = TranslationRow.from_dict(row)
            if not translation.is_published or not translation.locale:
                continue
            contents.append(ContentRow(page_id=int(row['page_id']), locale=translation.locale,
                                       content=translation.content))
        return contents

    def fetch_meditation_titles(self) -> Dict[int, str]:
        """Meditation id -> normalized title, in the primary locale."""
        rows = self._query(sql.SQL("""
            SELECT m.id, mt.name
            FROM meditations m
            JOIN meditation_translations mt ON mt.meditation_id = m.id
            WHERE mt.locale = %s
        """), [self.meditation_locale])
        return {int(row['id']): normalize_title(row['name']) for row in rows if row.get('name')}


__all__ = ['LegacySource', 'DEFAULT_TEMP_DATABASE']
