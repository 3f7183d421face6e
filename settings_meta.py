"""
Known server.ini settings
Static metadata for the settings editor and helpers that interpret raw
server.ini values against it.
"""
from typing import Dict, List, Optional

from config_document import split_list_value

SETTING_TYPES = ('string', 'integer', 'boolean', 'port', 'list')


def _setting(key, label, setting_type, default, description=''):
    return {
        'key': key,
        'label': label,
        'type': setting_type,
        'defaultValue': default,
        'description': description,
    }


# Common keys from the Project Zomboid server settings documentation
COMMON_SETTINGS = [
    # Server info
    _setting('ServerName', 'Server Name', 'string', 'servertest', 'Internal server name (not shown publicly).'),
    _setting('PublicName', 'Public Name', 'string', 'My PZ Server', 'Name shown in the public server list.'),
    _setting('PublicDescription', 'Public Description', 'string', '', 'Short description shown in the server list.'),
    _setting('Password', 'Password', 'string', '', 'Password required to join (empty for none).'),
    _setting('MaxPlayers', 'Max Players', 'integer', 32, 'Maximum number of connected players.'),
    _setting('Public', 'Public', 'boolean', False, 'List the server publicly.'),
    _setting('Open', 'Open', 'boolean', True, 'Allow new players to create accounts.'),

    # Network
    _setting('DefaultPort', 'Default Port', 'port', 16261),
    _setting('UDPPort', 'UDP Port', 'port', 16262),
    _setting('SteamPort1', 'Steam Port 1', 'port', 8766),
    _setting('SteamPort2', 'Steam Port 2', 'port', 8767),
    _setting('RCONPort', 'RCON Port', 'port', 27015),
    _setting('RCONPassword', 'RCON Password', 'string', '', 'RCON is disabled while this is empty.'),

    # World and mods
    _setting('Map', 'Map', 'string', 'Muldraugh, KY', 'Map folders, separated by ";".'),
    _setting('Mods', 'Mods', 'list', '', 'Mod IDs, separated by ";".'),
    _setting('WorkshopItems', 'Workshop Items', 'list', '', 'Steam Workshop item IDs, separated by ";".'),
    _setting('SaveWorldEveryMinutes', 'Save World Every Minutes', 'integer', 0, '0 disables periodic saves.'),
    _setting('SpawnPoint', 'Spawn Point', 'string', '0,0,0', 'Forced spawn point as x,y,z (0,0,0 disables).'),
    _setting('PauseEmpty', 'Pause Empty', 'boolean', False, 'Pause the world while no players are online.'),
    _setting('ResetID', 'Reset ID', 'integer', 0),

    # PvP and safety
    _setting('PVP', 'PVP', 'boolean', True),
    _setting('SafetySystem', 'Safety System', 'boolean', True),
    _setting('ShowSafety', 'Show Safety', 'boolean', True),
    _setting('SafetyToggleTimer', 'Safety Toggle Timer', 'integer', 2),
    _setting('SafetyCooldownTimer', 'Safety Cooldown Timer', 'integer', 3),

    # Safehouses
    _setting('PlayerSafehouse', 'Player Safehouse', 'boolean', False),
    _setting('AdminSafehouse', 'Admin Safehouse', 'boolean', False),
    _setting('SafehouseAllowTrepass', 'Safehouse Allow Trespass', 'boolean', True),
    _setting('SafehouseAllowFire', 'Safehouse Allow Fire', 'boolean', True),
    _setting('SafehouseAllowLoot', 'Safehouse Allow Loot', 'boolean', True),
    _setting('SafehouseAllowRespawn', 'Safehouse Allow Respawn', 'boolean', False),
    _setting('SafehouseDaySurvivedToClaim', 'Days Survived To Claim', 'integer', 0),
    _setting('SafeHouseRemovalTime', 'Safe House Removal Time', 'integer', 144),

    # Loot
    _setting('HoursForLootRespawn', 'Hours For Loot Respawn', 'integer', 0),
    _setting('MaxItemsForLootRespawn', 'Max Items For Loot Respawn', 'integer', 4),
    _setting('ConstructionPreventsLootRespawn', 'Construction Prevents Loot Respawn', 'boolean', True),

    # Fire
    _setting('NoFire', 'No Fire', 'boolean', False),
    _setting('NoFireSpread', 'No Fire Spread', 'boolean', False),

    # Voice
    _setting('VoiceEnable', 'Voice Enable', 'boolean', True),
    _setting('VoiceMinDistance', 'Voice Min Distance', 'integer', 10),
    _setting('VoiceMaxDistance', 'Voice Max Distance', 'integer', 100),
    _setting('Voice3D', 'Voice 3D', 'boolean', True),

    # Sleep
    _setting('SleepAllowed', 'Sleep Allowed', 'boolean', False),
    _setting('SleepNeeded', 'Sleep Needed', 'boolean', False),

    # Players and chat
    _setting('DisplayUserName', 'Display User Name', 'boolean', True),
    _setting('ShowFirstAndLastName', 'Show First And Last Name', 'boolean', False),
    _setting('SpawnItems', 'Spawn Items', 'list', '', 'Items given to new characters, separated by ",".'),
    _setting('AnnounceDeath', 'Announce Death', 'boolean', False),
    _setting('GlobalChat', 'Global Chat', 'boolean', True),
    _setting('ChatStreams', 'Chat Streams', 'string', 's,r,a,w,y,sh,f,all'),
    _setting('ServerWelcomeMessage', 'Server Welcome Message', 'string', 'Welcome to Project Zomboid Multiplayer!'),
    _setting('AllowDestructionBySledgehammer', 'Allow Destruction By Sledgehammer', 'boolean', True),
    _setting('AllowNonAsciiUsername', 'Allow Non-ASCII Username', 'boolean', False),
]

SETTINGS_BY_KEY = {setting['key']: setting for setting in COMMON_SETTINGS}


def get_setting_meta(key: str) -> Optional[Dict]:
    """Look up metadata for a server.ini key"""
    return SETTINGS_BY_KEY.get(key)


def coerce_setting(key: str, raw_value: str):
    """
    Interpret a raw server.ini value using the metadata table

    Unknown keys and values that do not fit their declared type are returned
    unchanged as strings.
    """
    meta = SETTINGS_BY_KEY.get(key)
    if not meta:
        return raw_value

    setting_type = meta['type']
    if setting_type == 'boolean':
        if raw_value.lower() in ('true', 'false'):
            return raw_value.lower() == 'true'
        return raw_value
    if setting_type in ('integer', 'port'):
        try:
            return int(raw_value)
        except ValueError:
            return raw_value
    if setting_type == 'list':
        if key == 'SpawnItems':
            return [item.strip() for item in raw_value.split(',') if item.strip()]
        items, _ = split_list_value(raw_value, numeric_only=(key == 'WorkshopItems'))
        return items
    return raw_value


def describe_settings(values: Dict[str, str]) -> List[Dict]:
    """
    Pair parsed server.ini values with their metadata

    Known keys come first in table order, then any other keys in file order.
    """
    described = []
    for meta in COMMON_SETTINGS:
        described.append({
            **meta,
            'value': values.get(meta['key']),
            'present': meta['key'] in values,
        })
    for key, value in values.items():
        if key in SETTINGS_BY_KEY:
            continue
        described.append({
            'key': key,
            'label': key,
            'type': 'string',
            'defaultValue': None,
            'description': '',
            'value': value,
            'present': True,
        })
    return described
