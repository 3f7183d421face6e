import os
import tempfile
import unittest

from mod_manager import ModManager


class ModManagerTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.server_path = self.tmp.name
        self.manager = ModManager()

    def tearDown(self):
        self.tmp.cleanup()

    def write_ini(self, name, content):
        path = os.path.join(self.server_path, name)
        with open(path, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        return path

    def read_ini(self, path):
        with open(path, 'r', encoding='utf-8', newline='') as f:
            return f.read()

    def test_prefers_servertest_ini(self):
        self.write_ini('server.ini', 'Mods=\n')
        path = self.write_ini('servertest.ini', 'Mods=\n')
        self.assertEqual(self.manager.find_server_ini(self.server_path), path)

    def test_workshop_items_wrapped_across_lines(self):
        self.write_ini('servertest.ini', 'Mods=ModA;ModB\nWorkshopItems=111111111;\n222222222\nPVP=true\n')
        mods, warning = self.manager.get_mods(self.server_path)
        self.assertEqual([mod['workshopId'] for mod in mods], ['111111111', '222222222'])
        self.assertIsNone(warning)

    def test_falls_back_to_mods_line(self):
        self.write_ini('servertest.ini', 'Mods=ModA,ModB;123456789\nWorkshopItems=\n')
        mods, _ = self.manager.get_mods(self.server_path)
        self.assertEqual(mods, [
            {'id': 'ModA', 'name': 'ModA', 'workshopId': None},
            {'id': 'ModB', 'name': 'ModB', 'workshopId': None},
            {'id': '123456789', 'name': '123456789', 'workshopId': '123456789'},
        ])

    def test_keys_are_case_insensitive(self):
        self.write_ini('servertest.ini', 'workshopitems=111111111\n')
        mods, _ = self.manager.get_mods(self.server_path)
        self.assertEqual(mods[0]['id'], '111111111')

    def test_explicit_file_path(self):
        path = self.write_ini('other.ini', 'WorkshopItems=111111111;x;222222222\n')
        mods, warning = self.manager.get_mods(file_path=path)
        self.assertEqual(len(mods), 2)
        self.assertIsNotNone(warning)

    def test_missing_server(self):
        self.assertEqual(self.manager.get_mods(os.path.join(self.server_path, 'missing')), ([], None))
        self.assertEqual(self.manager.get_mods(), ([], None))

    def test_save_mods(self):
        path = self.write_ini('servertest.ini', 'Mods=Old\nWorkshopItems=1;\n2\nPVP=true\n')
        success, message = self.manager.save_mods(self.server_path, [
            {'id': 'ModA'},
            {'id': '123456789', 'workshopId': '123456789'},
        ])
        self.assertTrue(success, message)
        self.assertEqual(self.read_ini(path), 'Mods=ModA\nWorkshopItems=123456789\nPVP=true\n')

    def test_save_mods_appends_missing_keys(self):
        path = self.write_ini('servertest.ini', 'PVP=true\r\n')
        success, _ = self.manager.save_mods(self.server_path, [{'id': '123456789', 'workshopId': '123456789'}])
        self.assertTrue(success)
        self.assertEqual(self.read_ini(path), 'PVP=true\r\nWorkshopItems=123456789\r\n')

    def test_save_mods_without_ini(self):
        success, message = self.manager.save_mods(self.server_path, [])
        self.assertFalse(success)
        self.assertEqual(message, 'Server ini file not found')


if __name__ == '__main__':
    unittest.main()
