"""
Config Document Engine
Round-trips server.ini (flat key=value) and SandboxVars.lua (nested Lua table)
files: parses them into ordered entries and writes patched values back while
leaving comments, ordering and formatting of untouched lines alone.
"""
import logging
import math
import os
import re
from collections.abc import Mapping
from enum import Enum
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Dialect(Enum):
    """Supported config file dialects"""
    FLAT_INI = 'ini'
    NESTED_TABLE = 'lua'


class ValueType:
    """Inferred types of config values"""
    BOOLEAN = 'boolean'
    INTEGER = 'integer'
    FLOAT = 'float'
    STRING = 'string'
    LIST = 'list'
    TABLE = 'table'


class ValueDescriptor:
    """Raw text of a config value plus the type inferred from its literal"""

    __slots__ = ('raw_value', 'inferred_type')

    def __init__(self, raw_value: str, inferred_type: str = ValueType.STRING):
        self.raw_value = raw_value
        self.inferred_type = inferred_type

    def to_dict(self) -> Dict[str, str]:
        return {'value': self.raw_value, 'type': self.inferred_type}

    def __eq__(self, other):
        if not isinstance(other, ValueDescriptor):
            return NotImplemented
        return self.raw_value == other.raw_value and self.inferred_type == other.inferred_type

    def __repr__(self):
        return f'<ValueDescriptor {self.raw_value!r} ({self.inferred_type})>'


# --- FLAT_INI patterns ---
INI_COMMENT_PREFIXES = (';', '#')
INI_ASSIGNMENT = re.compile(r'^([^=]+)=(.*)$')
INI_KEY_START = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*\s*=')

# Keys whose value is a ';' separated list that producers may wrap across lines
LIST_KEYS = ('workshopitems', 'mods')

# --- NESTED_TABLE patterns ---
LUA_BLOCK_COMMENT = re.compile(r'--\[\[[\s\S]*?\]\]')
# Group 1 keeps quoted strings so a '--' inside them is not taken as a comment
LUA_LINE_COMMENT = re.compile(r'("[^"\n]*"|\'[^\'\n]*\')|--[^\n]*')
LUA_ASSIGNMENT = re.compile(r'([a-zA-Z_][a-zA-Z0-9_.]*)\s*=\s*("[^"\n]*"|\'[^\'\n]*\'|[^,}\n]+)')
LUA_LINE = re.compile(
    r'^(\s*)([a-zA-Z_][a-zA-Z0-9_]*)\s*=\s*("[^"]*"|\'[^\']*\'|.+?)(,?)(\s*--.*)?\s*$'
)
LUA_ROOT_MARKER = re.compile(r'\bSandboxVars\s*=')

NUMBER = re.compile(r'^-?(\d+\.?\d*|\.\d+)$')
INTEGER_LITERAL = re.compile(r'^-?\d+$')
FLOAT_LITERAL = re.compile(r'^-?\d+\.\d+$')
NUMERIC_TEXT = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
TABLE_PREFIX = re.compile(r'^[{\[]')
EDGE_QUOTES = re.compile(r'^["\']|["\']$')
TRAILING_COMMA = re.compile(r',\s*$')
BARE_NEW_VALUE = re.compile(r'^-?[\d.]+$')
LIST_TOKEN = re.compile(r'^[0-9]+$')

FALSY_VALUES = ('', '0', 'false', 'no', 'off')


def detect_dialect(filename: str, content: Optional[str] = None) -> Optional[Dialect]:
    """
    Decide which dialect a config file is written in

    Args:
        filename: File name or path (only the extension is inspected)
        content: Optional file content used when the extension is not conclusive

    Returns:
        Dialect or None when the file is not an editable config file
    """
    extension = os.path.splitext(filename or '')[1].lower()
    if extension == '.ini':
        return Dialect.FLAT_INI
    if extension == '.lua':
        return Dialect.NESTED_TABLE
    if content and LUA_ROOT_MARKER.search(content):
        return Dialect.NESTED_TABLE
    return None


def parse_config(text: str, dialect: Dialect) -> Dict[str, ValueDescriptor]:
    """
    Parse config text into ordered entries

    Malformed lines never raise; they are skipped here and preserved on
    serialize. When a key repeats, the last occurrence wins.

    Args:
        text: Raw file content
        dialect: Dialect chosen with detect_dialect()

    Returns:
        dict: key -> ValueDescriptor, in order of first appearance
    """
    _require_text(text)
    if dialect == Dialect.FLAT_INI:
        return _parse_ini(text)
    if dialect == Dialect.NESTED_TABLE:
        return _parse_lua(text)
    raise TypeError(f'Unsupported dialect: {dialect!r}')


def serialize_config(original_text: str, dialect: Dialect, patch: Optional[Mapping] = None) -> str:
    """
    Apply a settings patch to the original text

    Lines whose key is not in the patch are emitted byte for byte; patch keys
    missing from the file are appended at the end.

    Args:
        original_text: File content the patch is applied to
        dialect: Dialect chosen with detect_dialect()
        patch: key -> new raw value

    Returns:
        str: New file content
    """
    _require_text(original_text)
    pending = _normalize_patch(patch)
    if dialect == Dialect.FLAT_INI:
        return _serialize_ini(original_text, pending)
    if dialect == Dialect.NESTED_TABLE:
        return _serialize_lua(original_text, pending)
    raise TypeError(f'Unsupported dialect: {dialect!r}')


def split_list_value(raw_value: str, numeric_only: bool = False) -> Tuple[List[str], Optional[str]]:
    """
    Split a ';' separated list value such as WorkshopItems

    Args:
        raw_value: Value as returned by the parser
        numeric_only: Keep only digit-only tokens (workshop ids)

    Returns:
        tuple: (items, warning) where warning describes a count mismatch or is None
    """
    items = [part.strip() for part in raw_value.split(';')]
    items = [item for item in items if item]

    if numeric_only:
        for token in items:
            if not LIST_TOKEN.match(token):
                logger.debug(f"Skipping non-numeric list token: {token[:50]}")
        items = [item for item in items if LIST_TOKEN.match(item)]

    warning = None
    body = raw_value.strip().rstrip(';')
    separators = body.count(';')
    if separators > 0 and len(items) != separators + 1:
        warning = f"Expected {separators + 1} items but got {len(items)}"
        logger.warning(f"List value inconsistency: {warning}")

    return items, warning


class ConfigDocument:
    """
    A config file parsed for editing

    Built fresh for every read or write; holds no state beyond the text it
    was created from.
    """

    def __init__(self, source_text: str, dialect: Dialect):
        _require_text(source_text)
        self.source_text = source_text
        self.dialect = dialect
        self.entries = parse_config(source_text, dialect)
        self.table_keys = _lua_table_keys(source_text) if dialect == Dialect.NESTED_TABLE else set()

    @classmethod
    def from_text(cls, source_text: str, filename: str) -> Optional['ConfigDocument']:
        """Build a document, detecting the dialect from the file name and content"""
        dialect = detect_dialect(filename, source_text)
        if dialect is None:
            return None
        return cls(source_text, dialect)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        entry = self.entries.get(key)
        return entry.raw_value if entry else default

    def values(self) -> Dict[str, str]:
        return {key: entry.raw_value for key, entry in self.entries.items()}

    def types(self) -> Dict[str, str]:
        return {key: entry.inferred_type for key, entry in self.entries.items()}

    def serialize(self, patch: Optional[Mapping] = None) -> str:
        return serialize_config(self.source_text, self.dialect, patch)

    def __contains__(self, key):
        return key in self.entries

    def __len__(self):
        return len(self.entries)

    def __repr__(self):
        return f'<ConfigDocument {self.dialect.value} ({len(self.entries)} entries)>'


# --- FLAT_INI ---

def _is_ini_skippable(trimmed: str) -> bool:
    return not trimmed or trimmed.startswith(INI_COMMENT_PREFIXES)


def _is_ini_continuation(line: str) -> bool:
    trimmed = line.strip()
    return not _is_ini_skippable(trimmed) and not INI_KEY_START.match(trimmed)


def _is_list_key(key: str) -> bool:
    return key.lower() in LIST_KEYS


def _parse_ini(text: str) -> Dict[str, ValueDescriptor]:
    entries = {}
    lines = text.split('\n')
    index = 0

    while index < len(lines):
        trimmed = lines[index].strip()
        index += 1

        if _is_ini_skippable(trimmed):
            continue

        match = INI_ASSIGNMENT.match(trimmed)
        if not match:
            continue

        key = match.group(1).strip()
        value = match.group(2).strip()

        if _is_list_key(key):
            # Greedily join wrapped lines of one logical list value
            while index < len(lines) and _is_ini_continuation(lines[index]):
                value += lines[index].strip()
                index += 1
            entries[key] = ValueDescriptor(value, ValueType.LIST)
        else:
            entries[key] = ValueDescriptor(value, ValueType.STRING)

    return entries


def _serialize_ini(original_text: str, pending: Dict[str, str]) -> str:
    output = []
    continuation_mode = False

    for line in original_text.split('\n'):
        if continuation_mode:
            if _is_ini_continuation(line):
                # Wrapped remainder of a list value that was just replaced
                continue
            continuation_mode = False

        trimmed = line.strip()
        if _is_ini_skippable(trimmed):
            output.append(line)
            continue

        match = INI_ASSIGNMENT.match(trimmed)
        if not match:
            output.append(line)
            continue

        key = match.group(1).strip()
        if key in pending:
            output.append(f'{key}={pending.pop(key)}{_line_ending(line)}')
            continuation_mode = _is_list_key(key)
        else:
            output.append(line)

    _append_lines(output, [f'{key}={value}' for key, value in pending.items()])
    return '\n'.join(output)


# --- NESTED_TABLE ---

def _strip_lua_comments(text: str) -> str:
    text = LUA_BLOCK_COMMENT.sub('', text)
    return LUA_LINE_COMMENT.sub(lambda match: match.group(1) or '', text)


def _infer_lua_value(value: str) -> ValueDescriptor:
    if value in ('true', 'false'):
        return ValueDescriptor(value, ValueType.BOOLEAN)
    if NUMBER.match(value):
        value_type = ValueType.INTEGER if INTEGER_LITERAL.match(value) else ValueType.FLOAT
        return ValueDescriptor(value, value_type)
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return ValueDescriptor(value[1:-1], ValueType.STRING)
    return ValueDescriptor(value, ValueType.STRING)


def _parse_lua(text: str) -> Dict[str, ValueDescriptor]:
    entries = {}
    for match in LUA_ASSIGNMENT.finditer(_strip_lua_comments(text)):
        key = match.group(1).strip()
        value = match.group(2).strip()

        # Table literals are not editable entries
        if value.startswith('{'):
            continue

        value = TRAILING_COMMA.sub('', value)
        entries[key] = _infer_lua_value(value)

    return entries


def _lua_table_keys(text: str) -> set:
    """Keys assigned a table literal; patches naming them are never applied"""
    return {
        match.group(1).strip()
        for match in LUA_ASSIGNMENT.finditer(_strip_lua_comments(text))
        if match.group(2).strip().startswith('{')
    }


def _opens_block_comment(line: str) -> bool:
    start = line.find('--[[')
    return start != -1 and ']]' not in line[start + 4:]


def _serialize_lua(original_text: str, pending: Dict[str, str]) -> str:
    output = []
    in_block_comment = False

    for raw_line in original_text.split('\n'):
        if in_block_comment:
            output.append(raw_line)
            if ']]' in raw_line:
                in_block_comment = False
            continue

        ending = _line_ending(raw_line)
        line = raw_line[:-1] if ending else raw_line
        trimmed = line.strip()
        in_block_comment = _opens_block_comment(line)

        if not trimmed or trimmed.startswith('--'):
            output.append(raw_line)
            continue

        code, comment = _split_lua_comment(line)
        if len(LUA_ASSIGNMENT.findall(code)) > 1:
            # Several assignments share the line: rewrite each patched segment in place
            output.append(_rewrite_assignments(code, pending) + comment + ending)
            continue

        match = LUA_LINE.match(line)
        if not match:
            output.append(raw_line)
            continue

        indent, key, old_value, comma, comment = match.groups()
        if key not in pending:
            output.append(raw_line)
            continue

        formatted = _replacement_value(old_value.strip(), pending.pop(key))
        if formatted is None:
            output.append(raw_line)
            continue

        output.append(f'{indent}{key} = {formatted}{comma}{comment or ""}{ending}')

    _append_lines(output, [f'    {key} = {_format_new_lua_value(value)},' for key, value in pending.items()])
    return '\n'.join(output)


def _split_lua_comment(line: str) -> Tuple[str, str]:
    for match in LUA_LINE_COMMENT.finditer(line):
        if match.group(1) is None:
            return line[:match.start()], line[match.start():]
    return line, ''


def _rewrite_assignments(code: str, pending: Dict[str, str]) -> str:
    pieces = []
    position = 0
    for match in LUA_ASSIGNMENT.finditer(code):
        key = match.group(1)
        if key not in pending:
            continue

        start = match.start(2)
        old_value = match.group(2).rstrip()
        formatted = _replacement_value(old_value, pending.pop(key))
        if formatted is None:
            continue

        pieces.append(code[position:start])
        pieces.append(formatted)
        position = start + len(old_value)

    pieces.append(code[position:])
    return ''.join(pieces)


def _replacement_value(old_value: str, new_value: str) -> Optional[str]:
    """New literal for old_value, or None when the line should stay as it is"""
    # Table-typed values are never rewritten here
    if TABLE_PREFIX.match(old_value):
        return None

    clean_old = EDGE_QUOTES.sub('', old_value)
    clean_new = TRAILING_COMMA.sub('', EDGE_QUOTES.sub('', new_value))
    if clean_old == clean_new:
        return None
    return _format_like(old_value, clean_new)


def _format_like(old_value: str, new_value: str) -> str:
    """Format new_value with the type of the literal it replaces"""
    if old_value[:1] in ('"', "'"):
        quote = old_value[0]
        return f'{quote}{new_value}{quote}'
    if old_value in ('true', 'false'):
        return 'false' if new_value.strip().lower() in FALSY_VALUES else 'true'
    if INTEGER_LITERAL.match(old_value):
        return str(int(math.floor(_to_number(new_value) + 0.5)))
    if FLOAT_LITERAL.match(old_value):
        number = _to_number(new_value)
        return str(int(number)) if number.is_integer() else repr(number)
    return new_value


def _format_new_lua_value(value: str) -> str:
    value = TRAILING_COMMA.sub('', value)
    if BARE_NEW_VALUE.match(value) or value in ('true', 'false') or value[:1] in ('"', "'", '[', '{'):
        return value
    return f'"{value}"'


def _to_number(text: str) -> float:
    text = text.strip()
    if not NUMERIC_TEXT.match(text):
        return 0.0
    number = float(text)
    return number if math.isfinite(number) else 0.0


# --- shared helpers ---

def _line_ending(line: str) -> str:
    return '\r' if line.endswith('\r') else ''


def _append_lines(output: List[str], new_lines: List[str]):
    """Append lines at end of file, keeping a trailing newline where there was one"""
    if not new_lines:
        return
    if any(line.endswith('\r') for line in output):
        new_lines = [line + '\r' for line in new_lines]
    if output == ['']:
        output[:] = new_lines
    elif output and output[-1] == '':
        output[-1:-1] = new_lines
    else:
        output.extend(new_lines)


def _require_text(text):
    if not isinstance(text, str):
        raise TypeError(f'Config text must be str, not {type(text).__name__}')


def _normalize_patch(patch: Optional[Mapping]) -> Dict[str, str]:
    if patch is None:
        return {}
    if not isinstance(patch, Mapping):
        raise TypeError(f'Settings patch must be a mapping, not {type(patch).__name__}')

    normalized = {}
    for key, value in patch.items():
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        elif value is None:
            value = ''
        normalized[str(key)] = str(value)
    return normalized
