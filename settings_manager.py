"""
Config File Manager
Reads, patches and writes server.ini / SandboxVars.lua files on disk
"""
import os
import logging
from typing import Dict, List, Optional, Tuple

from config_document import ConfigDocument, detect_dialect
from settings_meta import describe_settings

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ('.ini', '.lua')
SERVER_SETTINGS_FILE = 'server.ini'


class ConfigFileError(Exception):
    """File level failure with the HTTP status the web layer should answer with"""

    def __init__(self, message, status_code=400, **details):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self):
        return {'error': self.message, **self.details}


def normalize_path(input_path: str) -> str:
    """Trim and normalize a path typed by the operator"""
    return os.path.normpath(input_path.strip())


def check_file_access(file_path: str, write: bool = False) -> Tuple[bool, Optional[str]]:
    """
    Check that a path is an accessible regular file

    Returns:
        tuple: (accessible: bool, error: str or None)
    """
    if not os.path.exists(file_path):
        return False, 'File does not exist'
    if not os.path.isfile(file_path):
        return False, 'Path is not a file'
    if not os.access(file_path, os.R_OK):
        return False, 'No read permission'
    if write and not os.access(file_path, os.W_OK):
        return False, 'No write permission'
    return True, None


def read_text(file_path: str) -> str:
    # newline='' keeps '\r\n' intact so untouched lines round-trip byte for byte
    with open(file_path, 'r', encoding='utf-8', newline='') as f:
        return f.read()


def write_text(file_path: str, content: str):
    with open(file_path, 'w', encoding='utf-8', newline='') as f:
        f.write(content)


def list_config_files(directory_path: str, extensions=None) -> List[Dict]:
    """
    List config files in a directory

    Args:
        directory_path: Directory to scan (not recursive)
        extensions: Iterable of extensions like '.ini' (defaults to .ini and .lua)

    Returns:
        list: [{name, path, extension, size}] sorted by name
    """
    extensions = [ext.strip().lower() for ext in (extensions or DEFAULT_EXTENSIONS) if ext.strip()]
    normalized = normalize_path(directory_path)

    if not os.path.exists(normalized):
        raise ConfigFileError('Directory not found', 404, path=normalized)
    if not os.path.isdir(normalized):
        raise ConfigFileError('Path is not a directory', 400, path=normalized)

    files = []
    for name in os.listdir(normalized):
        file_path = os.path.join(normalized, name)
        if not os.path.isfile(file_path):
            continue
        extension = os.path.splitext(name)[1].lower()
        if extension not in extensions:
            continue
        files.append({
            'name': name,
            'path': file_path,
            'extension': extension,
            'size': os.path.getsize(file_path),
        })

    return sorted(files, key=lambda item: item['name'].lower())


def _open_existing(file_path: str, write: bool = False) -> str:
    normalized = normalize_path(file_path)
    if not os.path.exists(normalized):
        raise ConfigFileError('File not found', 404, path=normalized)

    accessible, error = check_file_access(normalized, write=write)
    if not accessible:
        status = 400 if error == 'Path is not a file' else 403
        raise ConfigFileError(error, status, path=normalized)
    return normalized


def read_config_file(file_path: str) -> Dict:
    """
    Read a config file and parse it when its dialect is known

    Returns:
        dict: {content, types, rawContent, fileName, filePath, extension, size, dialect}
    """
    normalized = _open_existing(file_path)
    content = read_text(normalized)
    document = ConfigDocument.from_text(content, normalized)

    logger.info(f"Read config file {normalized} ({len(content)} bytes, "
                f"dialect={document.dialect.value if document else 'none'})")

    return {
        'content': document.values() if document else {},
        'types': document.types() if document else {},
        'rawContent': content,
        'fileName': os.path.basename(normalized),
        'filePath': normalized,
        'extension': os.path.splitext(normalized)[1].lower(),
        'size': os.path.getsize(normalized),
        'dialect': document.dialect.value if document else None,
    }


def save_settings(file_path: str, settings: Dict) -> Dict:
    """
    Apply a settings patch to a config file

    The file is read, patched and written back in one pass. Concurrent writers
    are not detected; the last write wins.

    Returns:
        dict: {success, path, updated, appended, ignored}
    """
    if not isinstance(settings, dict):
        raise ConfigFileError('Settings must be an object', 400)

    normalized = _open_existing(file_path, write=True)
    content = read_text(normalized)
    document = ConfigDocument.from_text(content, normalized)
    if document is None:
        raise ConfigFileError('Unsupported config file type', 400, path=normalized)

    new_content = document.serialize(settings)
    ignored = [key for key in settings if key in document.table_keys]
    appended = [key for key in settings if key not in document and key not in document.table_keys]

    if new_content != content:
        write_text(normalized, new_content)
        logger.info(f"Saved {len(settings)} setting(s) to {normalized} ({len(appended)} appended)")
    else:
        logger.info(f"No changes to write for {normalized}")

    return {
        'success': True,
        'path': normalized,
        'updated': [key for key in settings if key in document],
        'appended': appended,
        'ignored': ignored,
    }


def write_raw_content(file_path: str, content: str) -> Dict:
    """Overwrite an existing file with content edited as raw text"""
    if not isinstance(content, str):
        raise ConfigFileError('Content must be a string', 400)

    normalized = _open_existing(file_path, write=True)
    write_text(normalized, content)
    logger.info(f"Wrote raw content to {normalized} ({len(content)} bytes)")
    return {'success': True, 'path': normalized}


def _server_ini_path(server_path: str) -> str:
    normalized = normalize_path(server_path)
    if not os.path.exists(normalized):
        raise ConfigFileError('Server directory not found', 404, path=normalized, originalPath=server_path)
    if not os.path.isdir(normalized):
        raise ConfigFileError('Server path is not a directory', 400, path=normalized)

    ini_path = os.path.join(normalized, SERVER_SETTINGS_FILE)
    if not os.path.exists(ini_path):
        files = sorted(os.listdir(normalized))
        logger.warning(f"{SERVER_SETTINGS_FILE} not found in {normalized}, directory holds: {files}")
        raise ConfigFileError(f'{SERVER_SETTINGS_FILE} not found', 404, path=ini_path, filesInDirectory=files)
    return ini_path


def read_server_settings(server_path: str) -> Dict:
    """
    Read <server_path>/server.ini

    Returns:
        dict: {settings, meta, path}
    """
    ini_path = _server_ini_path(server_path)
    parsed = read_config_file(ini_path)
    logger.info(f"Parsed {len(parsed['content'])} settings from {ini_path}")
    return {
        'settings': parsed['content'],
        'meta': describe_settings(parsed['content']),
        'path': ini_path,
    }


def save_server_settings(server_path: str, settings: Dict) -> Dict:
    """Apply a settings patch to <server_path>/server.ini"""
    return save_settings(_server_ini_path(server_path), settings)
