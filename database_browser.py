"""
Game Database Browser
Lists and inspects the SQLite databases a Project Zomboid server writes
(players.db, vehicles.db, ...). Browsing opens files read-only.
"""
import os
import errno
import logging
from urllib.parse import quote

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Database browser failure with the HTTP status to report"""

    def __init__(self, message, status_code=500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _read_only_uri(db_path):
    absolute = os.path.abspath(db_path).replace('\\', '/')
    if not absolute.startswith('/'):
        absolute = '/' + absolute
    return f"sqlite:///file:{quote(absolute, safe='/:')}?mode=ro&uri=true"


def _engine(db_path, read_only=True):
    uri = _read_only_uri(db_path) if read_only else f"sqlite:///{os.path.abspath(db_path)}"
    return create_engine(uri, poolclass=NullPool)


def _require_file(db_path):
    if not db_path or not os.path.isfile(db_path):
        raise DatabaseError(f"Database file not found: {db_path}", 404)


def _quote(engine, name):
    return engine.dialect.identifier_preparer.quote(name)


def _jsonable(value):
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return value


def find_database_files(server_path):
    """
    Find .db files in the usual Project Zomboid locations

    Searched: <server>/db, <server>/../db, <server>, ~/Zomboid/db, ~/Zomboid/Saves
    """
    home = os.path.expanduser('~')
    search_paths = [
        os.path.join(server_path, 'db'),
        os.path.join(server_path, '..', 'db'),
        server_path,
        os.path.join(home, 'Zomboid', 'db'),
        os.path.join(home, 'Zomboid', 'Saves'),
    ]

    db_files = []
    seen = set()
    for search_path in search_paths:
        search_path = os.path.normpath(search_path)
        if not os.path.isdir(search_path):
            continue
        for name in sorted(os.listdir(search_path)):
            db_file = os.path.join(search_path, name)
            if name.endswith('.db') and os.path.isfile(db_file) and db_file not in seen:
                seen.add(db_file)
                db_files.append(db_file)
    return db_files


def _table_infos(engine):
    tables = []
    with engine.connect() as conn:
        for name in sorted(inspect(conn).get_table_names()):
            try:
                count = conn.execute(text(f"SELECT COUNT(*) FROM {_quote(engine, name)}")).scalar()
            except SQLAlchemyError as e:
                logger.warning(f"Could not count rows of {name}: {e}")
                count = 0
            tables.append({'name': name, 'rowCount': count or 0})
    return tables


def list_tables(db_path):
    """Tables of one database with their row counts"""
    _require_file(db_path)
    engine = _engine(db_path)
    try:
        return _table_infos(engine)
    finally:
        engine.dispose()


def list_databases(server_path):
    """
    Every database found for a server with its tables

    Returns:
        list: [{path, tables[, error]}]
    """
    databases = []
    for db_file in find_database_files(server_path):
        try:
            databases.append({'path': db_file, 'tables': list_tables(db_file)})
        except SQLAlchemyError as e:
            logger.error(f"Error reading database {db_file}: {e}")
            databases.append({'path': db_file, 'tables': [], 'error': str(e)})
    logger.info(f"Found {len(databases)} database(s) for {server_path}")
    return databases


def query_table(db_path, table_name, limit=100, offset=0):
    """
    One page of rows from a table

    Returns:
        dict: {table, schema, total, limit, offset, data}
    """
    _require_file(db_path)
    limit = max(0, int(limit))
    offset = max(0, int(offset))

    engine = _engine(db_path)
    try:
        with engine.connect() as conn:
            if table_name not in inspect(conn).get_table_names():
                raise DatabaseError(f"Table not found: {table_name}", 404)

            quoted = _quote(engine, table_name)
            schema = [dict(row._mapping) for row in conn.execute(text(f"PRAGMA table_info({quoted})"))]
            total = conn.execute(text(f"SELECT COUNT(*) FROM {quoted}")).scalar()
            rows = conn.execute(
                text(f"SELECT * FROM {quoted} LIMIT :limit OFFSET :offset"),
                {'limit': limit, 'offset': offset}
            )
            data = [{key: _jsonable(value) for key, value in row._mapping.items()} for row in rows]
    finally:
        engine.dispose()

    return {
        'table': table_name,
        'schema': schema,
        'total': total,
        'limit': limit,
        'offset': offset,
        'data': data,
    }


def drop_table(db_path, table_name):
    """
    Drop a table if it exists

    Returns:
        tuple: (success: bool, message: str)
    """
    _require_file(db_path)
    if not table_name:
        raise DatabaseError("Table name is required", 400)

    engine = _engine(db_path, read_only=False)
    try:
        with engine.begin() as conn:
            conn.execute(text(f"DROP TABLE IF EXISTS {_quote(engine, table_name)}"))
    finally:
        engine.dispose()

    logger.warning(f"Dropped table {table_name} from {db_path}")
    return True, f"Dropped table {table_name}"


def delete_database(db_path):
    """
    Delete a database file. Fails with 409 while the server holds it open.

    Returns:
        tuple: (success: bool, message: str)
    """
    _require_file(db_path)
    try:
        os.remove(db_path)
    except OSError as e:
        logger.error(f"Error deleting database {db_path}: {e}")
        if isinstance(e, PermissionError) or e.errno in (errno.EBUSY, errno.EPERM, errno.EACCES):
            raise DatabaseError("File is locked. Stop the server before deleting it!", 409)
        raise DatabaseError(f"Failed to delete file: {e}", 500)

    logger.warning(f"Deleted database file {db_path}")
    return True, "Deleted database file"
