import unittest

from config_document import (
    ConfigDocument, Dialect, ValueDescriptor, ValueType, detect_dialect, parse_config,
    serialize_config, split_list_value
)

SERVER_INI = (
    "# Project Zomboid server settings\r\n"
    "PVP=true\r\n"
    "MaxPlayers=32\r\n"
    "\r\n"
    "Mods=ModA;ModB\r\n"
    "WorkshopItems=111111111;\r\n"
    "222222222;333333333\r\n"
    "PublicName=My Server\r\n"
)

SANDBOX_LUA = (
    "SandboxVars = {\n"
    "    VERSION = 5,\n"
    "    -- Length of a day\n"
    "    DayLength = 3,\n"
    "    StartYear = 1, -- c\n"
    "    PauseEmpty = false,\n"
    "    Map = \"Muldraugh, KY\",\n"
    "    ZombieLore = {\n"
    "        Speed = 2,\n"
    "    },\n"
    "    FuelConsumption = 1.0,\n"
    "}\n"
)


class DetectDialectTests(unittest.TestCase):
    def test_extension_decides(self):
        self.assertEqual(detect_dialect('servertest.ini'), Dialect.FLAT_INI)
        self.assertEqual(detect_dialect('/srv/pz/SandboxVars.LUA'), Dialect.NESTED_TABLE)

    def test_content_marker_for_other_extensions(self):
        self.assertEqual(detect_dialect('backup.txt', 'SandboxVars = {\n}\n'), Dialect.NESTED_TABLE)
        self.assertIsNone(detect_dialect('notes.txt', 'hello'))
        self.assertIsNone(detect_dialect('notes.txt'))


class FlatIniTests(unittest.TestCase):
    def test_parse_values(self):
        entries = parse_config(SERVER_INI, Dialect.FLAT_INI)
        self.assertEqual(entries['PVP'], ValueDescriptor('true', ValueType.STRING))
        self.assertEqual(entries['MaxPlayers'].raw_value, '32')
        self.assertEqual(entries['PublicName'].raw_value, 'My Server')
        self.assertNotIn('# Project Zomboid server settings', entries)

    def test_wrapped_workshop_items_are_joined(self):
        entries = parse_config(SERVER_INI, Dialect.FLAT_INI)
        self.assertEqual(entries['WorkshopItems'].raw_value, '111111111;222222222;333333333')
        self.assertEqual(entries['WorkshopItems'].inferred_type, ValueType.LIST)
        items, warning = split_list_value(entries['WorkshopItems'].raw_value, numeric_only=True)
        self.assertEqual(items, ['111111111', '222222222', '333333333'])
        self.assertIsNone(warning)

    def test_round_trip_without_patch(self):
        self.assertEqual(serialize_config(SERVER_INI, Dialect.FLAT_INI, {}), SERVER_INI)
        self.assertEqual(serialize_config(SERVER_INI, Dialect.FLAT_INI), SERVER_INI)

    def test_patch_keeps_line_endings_and_comments(self):
        result = serialize_config(SERVER_INI, Dialect.FLAT_INI, {'MaxPlayers': '16'})
        self.assertIn('MaxPlayers=16\r\n', result)
        self.assertTrue(result.startswith('# Project Zomboid server settings\r\nPVP=true\r\n'))
        self.assertIn('\r\n\r\nMods=ModA;ModB\r\n', result)

    def test_patch_is_idempotent(self):
        patch = {'MaxPlayers': '16', 'WorkshopItems': '1;2'}
        once = serialize_config(SERVER_INI, Dialect.FLAT_INI, patch)
        self.assertEqual(serialize_config(once, Dialect.FLAT_INI, patch), once)

    def test_unknown_key_appends_one_line(self):
        result = serialize_config(SERVER_INI, Dialect.FLAT_INI, {'NewKey': 'x'})
        self.assertEqual(len(result.split('\n')), len(SERVER_INI.split('\n')) + 1)
        self.assertTrue(result.endswith('PublicName=My Server\r\nNewKey=x\r\n'))

    def test_patching_list_drops_wrapped_lines(self):
        result = serialize_config(SERVER_INI, Dialect.FLAT_INI, {'WorkshopItems': '1;2'})
        self.assertIn('WorkshopItems=1;2\r\nPublicName=My Server\r\n', result)
        self.assertNotIn('222222222', result)

    def test_bool_and_none_patch_values(self):
        result = serialize_config('PVP=true\nPassword=secret\n', Dialect.FLAT_INI, {'PVP': False, 'Password': None})
        self.assertEqual(result, 'PVP=false\nPassword=\n')

    def test_duplicate_keys(self):
        text = 'A=1\nA=2\n'
        self.assertEqual(parse_config(text, Dialect.FLAT_INI)['A'].raw_value, '2')
        self.assertEqual(serialize_config(text, Dialect.FLAT_INI, {'A': '3'}), 'A=3\nA=2\n')

    def test_append_to_empty_text(self):
        self.assertEqual(serialize_config('', Dialect.FLAT_INI, {'A': '1'}), 'A=1')

    def test_malformed_lines_are_kept(self):
        text = 'no equals sign here\nA=1\n'
        self.assertEqual(list(parse_config(text, Dialect.FLAT_INI)), ['A'])
        self.assertEqual(serialize_config(text, Dialect.FLAT_INI, {'A': '2'}), 'no equals sign here\nA=2\n')


class NestedTableTests(unittest.TestCase):
    def test_parse_types(self):
        entries = parse_config(SANDBOX_LUA, Dialect.NESTED_TABLE)
        self.assertEqual(entries['VERSION'], ValueDescriptor('5', ValueType.INTEGER))
        self.assertEqual(entries['DayLength'].raw_value, '3')
        self.assertEqual(entries['StartYear'].raw_value, '1')
        self.assertEqual(entries['PauseEmpty'], ValueDescriptor('false', ValueType.BOOLEAN))
        self.assertEqual(entries['Map'], ValueDescriptor('Muldraugh, KY', ValueType.STRING))
        self.assertEqual(entries['FuelConsumption'], ValueDescriptor('1.0', ValueType.FLOAT))
        self.assertEqual(entries['Speed'].raw_value, '2')

    def test_tables_are_not_entries(self):
        entries = parse_config(SANDBOX_LUA, Dialect.NESTED_TABLE)
        self.assertNotIn('SandboxVars', entries)
        self.assertNotIn('ZombieLore', entries)

    def test_round_trip_without_patch(self):
        self.assertEqual(serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {}), SANDBOX_LUA)

    def test_integer_patch(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'DayLength': '5'})
        self.assertIn('    DayLength = 5,\n', result)
        self.assertEqual(result.replace('DayLength = 5', 'DayLength = 3'), SANDBOX_LUA)

    def test_integer_patch_rounds(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'DayLength': '2.5'})
        self.assertIn('    DayLength = 3,\n', result)

    def test_quoted_string_keeps_quotes(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'Map': 'Riverside'})
        self.assertIn('    Map = "Riverside",\n', result)

    def test_boolean_patch(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'PauseEmpty': 'true'})
        self.assertIn('    PauseEmpty = true,\n', result)
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'PauseEmpty': 'off'})
        self.assertIn('    PauseEmpty = false,\n', result)

    def test_float_patch(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'FuelConsumption': '1.5'})
        self.assertIn('    FuelConsumption = 1.5,\n', result)

    def test_equal_value_keeps_line(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'StartYear': '1'})
        self.assertEqual(result, SANDBOX_LUA)

    def test_trailing_comment_survives_patch(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'StartYear': '2'})
        self.assertIn('    StartYear = 2, -- c\n', result)

    def test_table_keys_untouched_and_not_appended(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'ZombieLore': 'x', 'SandboxVars': 'y'})
        self.assertEqual(result, SANDBOX_LUA)

    def test_nested_key_patch(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'Speed': '3'})
        self.assertIn('        Speed = 3,\n', result)

    def test_unknown_key_appends_one_line(self):
        result = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, {'NewOption': 'abc', 'Count': '-4'})
        self.assertTrue(result.endswith('}\n    NewOption = "abc",\n    Count = -4,\n'))

    def test_patch_is_idempotent(self):
        patch = {'DayLength': '5', 'Map': 'Riverside', 'NewOption': '7'}
        once = serialize_config(SANDBOX_LUA, Dialect.NESTED_TABLE, patch)
        self.assertEqual(serialize_config(once, Dialect.NESTED_TABLE, patch), once)

    def test_block_comments_are_left_alone(self):
        text = 'SandboxVars = {\n--[[\n    DayLength = 9,\n]]\n    DayLength = 3,\n}\n'
        self.assertEqual(parse_config(text, Dialect.NESTED_TABLE)['DayLength'].raw_value, '3')
        result = serialize_config(text, Dialect.NESTED_TABLE, {'DayLength': '5'})
        self.assertEqual(result, 'SandboxVars = {\n--[[\n    DayLength = 9,\n]]\n    DayLength = 5,\n}\n')

    def test_comment_marker_inside_string(self):
        entries = parse_config('SandboxVars = {\n    Name = "a--b",\n}\n', Dialect.NESTED_TABLE)
        self.assertEqual(entries['Name'].raw_value, 'a--b')

    def test_multi_assignment_line_keeps_other_keys(self):
        text = 'SandboxVars = {\n    Zombies = 4, Speed = 2, -- pop\n}\n'
        entries = parse_config(text, Dialect.NESTED_TABLE)
        self.assertEqual(entries['Zombies'].raw_value, '4')
        self.assertEqual(entries['Speed'].raw_value, '2')

        result = serialize_config(text, Dialect.NESTED_TABLE, {'Zombies': '3'})
        self.assertEqual(result, 'SandboxVars = {\n    Zombies = 3, Speed = 2, -- pop\n}\n')
        result = serialize_config(text, Dialect.NESTED_TABLE, {'Speed': '1'})
        self.assertEqual(result, 'SandboxVars = {\n    Zombies = 4, Speed = 1, -- pop\n}\n')

    def test_multi_assignment_full_save_appends_nothing(self):
        text = 'SandboxVars = {\n    Zombies = 4, Speed = 2,\n}\n'
        result = serialize_config(text, Dialect.NESTED_TABLE, {'Zombies': '4', 'Speed': '5'})
        self.assertEqual(result, 'SandboxVars = {\n    Zombies = 4, Speed = 5,\n}\n')

    def test_multi_assignment_with_quoted_comma(self):
        text = 'SandboxVars = {\n    Name = "a, b", Count = 2,\n}\n'
        result = serialize_config(text, Dialect.NESTED_TABLE, {'Name': 'c'})
        self.assertEqual(result, 'SandboxVars = {\n    Name = "c", Count = 2,\n}\n')


class AmbiguousLiteralTests(unittest.TestCase):
    TEXT = (
        "SandboxVars = {\n"
        "    Code = 007,\n"
        "    Label = \"007\",\n"
        "    Drift = -0.5,\n"
        "    Big = 1e3,\n"
        "    Half = .5,\n"
        "    Rate = 1.0,\n"
        "}\n"
    )

    def test_parsed_types(self):
        entries = parse_config(self.TEXT, Dialect.NESTED_TABLE)
        self.assertEqual(entries['Code'], ValueDescriptor('007', ValueType.INTEGER))
        self.assertEqual(entries['Label'], ValueDescriptor('007', ValueType.STRING))
        self.assertEqual(entries['Drift'], ValueDescriptor('-0.5', ValueType.FLOAT))
        self.assertEqual(entries['Big'], ValueDescriptor('1e3', ValueType.STRING))
        self.assertEqual(entries['Half'], ValueDescriptor('.5', ValueType.FLOAT))

    def test_non_numeric_patch_becomes_zero(self):
        result = serialize_config(self.TEXT, Dialect.NESTED_TABLE, {'Code': 'abc', 'Rate': 'abc'})
        self.assertIn('    Code = 0,\n', result)
        self.assertIn('    Rate = 0,\n', result)

    def test_exponent_patch_on_integer(self):
        result = serialize_config(self.TEXT, Dialect.NESTED_TABLE, {'Code': '1e3'})
        self.assertIn('    Code = 1000,\n', result)

    def test_quoted_number_stays_string(self):
        result = serialize_config(self.TEXT, Dialect.NESTED_TABLE, {'Label': '8'})
        self.assertIn('    Label = "8",\n', result)


class SplitListValueTests(unittest.TestCase):
    def test_trailing_separator_is_not_a_gap(self):
        self.assertEqual(split_list_value('1;2;3;'), (['1', '2', '3'], None))

    def test_empty_item_warns(self):
        items, warning = split_list_value('1;2;;3')
        self.assertEqual(items, ['1', '2', '3'])
        self.assertEqual(warning, 'Expected 4 items but got 3')

    def test_numeric_only(self):
        items, warning = split_list_value('123;abc;456', numeric_only=True)
        self.assertEqual(items, ['123', '456'])
        self.assertIsNotNone(warning)


class ConfigDocumentTests(unittest.TestCase):
    def test_from_text(self):
        document = ConfigDocument.from_text('A=1\nB=2\n', 'server.ini')
        self.assertEqual(document.values(), {'A': '1', 'B': '2'})
        self.assertEqual(document.get('B'), '2')
        self.assertEqual(document.get('C', 'x'), 'x')
        self.assertIn('A', document)
        self.assertEqual(len(document), 2)
        self.assertEqual(document.serialize({'B': '3'}), 'A=1\nB=3\n')

    def test_unknown_file_type(self):
        self.assertIsNone(ConfigDocument.from_text('hello', 'notes.txt'))

    def test_table_keys(self):
        document = ConfigDocument.from_text(SANDBOX_LUA, 'servertest_SandboxVars.lua')
        self.assertEqual(document.table_keys, {'SandboxVars', 'ZombieLore'})
        self.assertEqual(ConfigDocument.from_text('A=1\n', 'server.ini').table_keys, set())

    def test_rejects_non_text(self):
        with self.assertRaises(TypeError):
            parse_config(b'A=1', Dialect.FLAT_INI)
        with self.assertRaises(TypeError):
            serialize_config('A=1', Dialect.FLAT_INI, ['A'])


if __name__ == '__main__':
    unittest.main()
