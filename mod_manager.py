import os
import re
import logging

from config_document import Dialect, parse_config, serialize_config, split_list_value
from settings_manager import read_text, write_text, normalize_path, check_file_access

logger = logging.getLogger(__name__)


class ModManager:
    """Manages the server's active mod list (Mods= and WorkshopItems= in the server ini)"""

    # Searched in order inside the server directory
    INI_CANDIDATES = ('servertest.ini', 'server.ini')

    def find_server_ini(self, server_path):
        """Find the ini file holding the mod list, or None"""
        normalized = normalize_path(server_path)
        for name in self.INI_CANDIDATES:
            candidate = os.path.join(normalized, name)
            if os.path.exists(candidate):
                return candidate
        return None

    def _resolve_ini(self, server_path=None, file_path=None):
        if file_path:
            ini_path = normalize_path(file_path)
            logger.info(f"Mods: using specified file {ini_path}")
            return ini_path if os.path.isfile(ini_path) else None

        if not server_path or not os.path.isdir(normalize_path(server_path)):
            logger.info(f"Mods: server directory not found: {server_path}")
            return None
        return self.find_server_ini(server_path)

    @staticmethod
    def _lookup(entries, key):
        """Case-insensitive lookup of an ini entry"""
        wanted = key.lower()
        for name, entry in entries.items():
            if name.lower() == wanted:
                return name, entry
        return None, None

    def get_mods(self, server_path=None, file_path=None):
        """
        Read the active mod list
        Returns: (mods: list of {id, name, workshopId}, warning: str or None)
        """
        ini_path = self._resolve_ini(server_path, file_path)
        if not ini_path:
            logger.info("Mods: no ini file found")
            return [], None

        entries = parse_config(read_text(ini_path), Dialect.FLAT_INI)
        mods = []
        warning = None

        # WorkshopItems is the most reliable source
        _, workshop_entry = self._lookup(entries, 'WorkshopItems')
        if workshop_entry and workshop_entry.raw_value:
            workshop_ids, warning = split_list_value(workshop_entry.raw_value, numeric_only=True)
            logger.info(f"Mods: found {len(workshop_ids)} workshop item(s) in {ini_path}")
            mods = [{'id': workshop_id, 'name': workshop_id, 'workshopId': workshop_id}
                    for workshop_id in workshop_ids]
        else:
            logger.info(f"Mods: WorkshopItems not found in {ini_path}")

        # Fall back to Mods=
        if not mods:
            _, mods_entry = self._lookup(entries, 'Mods')
            if mods_entry and mods_entry.raw_value:
                names = [name.strip() for name in re.split(r'[;,]', mods_entry.raw_value) if name.strip()]
                for name in names:
                    mods.append({
                        'id': name,
                        'name': name,
                        'workshopId': name if name.isdigit() else None
                    })

        logger.info(f"Mods: total {len(mods)} mod(s)")
        return mods, warning

    def save_mods(self, server_path, mods):
        """
        Write a mod list back to the server ini
        Returns: (success: bool, message: str)
        """
        ini_path = self.find_server_ini(server_path)
        if not ini_path:
            return False, "Server ini file not found"

        accessible, error = check_file_access(ini_path, write=True)
        if not accessible:
            return False, f"{error}: {ini_path}"

        regular_mods = [str(mod.get('id')) for mod in mods if not mod.get('workshopId')]
        workshop_items = [str(mod.get('workshopId')) for mod in mods if mod.get('workshopId')]

        try:
            content = read_text(ini_path)
            entries = parse_config(content, Dialect.FLAT_INI)

            patch = {}
            mods_key, _ = self._lookup(entries, 'Mods')
            if mods_key or regular_mods:
                patch[mods_key or 'Mods'] = ';'.join(regular_mods)

            workshop_key, _ = self._lookup(entries, 'WorkshopItems')
            if workshop_key or workshop_items:
                patch[workshop_key or 'WorkshopItems'] = ';'.join(workshop_items)

            write_text(ini_path, serialize_config(content, Dialect.FLAT_INI, patch))
            logger.info(f"Mods: saved {len(regular_mods)} mod(s) and {len(workshop_items)} workshop item(s) to {ini_path}")
            return True, f"Saved {len(mods)} mod(s)"

        except Exception as e:
            logger.error(f"Error saving mods to {ini_path}: {e}", exc_info=True)
            return False, f"Error saving mods: {str(e)}"
