import unittest
from unittest.mock import patch

from rcon.exceptions import WrongPassword

from rcon_utils import RConManager, parse_players

PLAYERS_REPLY = 'Players connected (2): \n-Alice\n-Bob\n'


class ParsePlayersTests(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(parse_players(PLAYERS_REPLY), ['Alice', 'Bob'])

    def test_empty(self):
        self.assertEqual(parse_players('Players connected (0): '), [])
        self.assertEqual(parse_players(None), [])


@patch('rcon_utils.Client')
class RConManagerTests(unittest.TestCase):
    def setUp(self):
        self.manager = RConManager('127.0.0.1', 27015, 'secret', timeout=2)

    def session(self, mock_client):
        return mock_client.return_value.__enter__.return_value

    def test_status_without_password(self, mock_client):
        status = RConManager('127.0.0.1', 27015, '').get_status()
        self.assertEqual(status['status'], 'offline')
        mock_client.assert_not_called()

    def test_status_online(self, mock_client):
        self.session(mock_client).run.return_value = PLAYERS_REPLY

        status = self.manager.get_status()

        mock_client.assert_called_once_with('127.0.0.1', 27015, passwd='secret', timeout=2)
        self.assertEqual(status['status'], 'online')
        self.assertEqual(status['players'], 2)
        self.assertEqual(status['playerList'], ['Alice', 'Bob'])
        self.assertIn('responseTime', status)

    def test_status_wrong_password(self, mock_client):
        mock_client.return_value.__enter__.side_effect = WrongPassword()
        status = self.manager.get_status()
        self.assertEqual(status, {'status': 'offline', 'error': 'Invalid RCON password',
                                  'responseTime': status['responseTime']})

    def test_status_unreachable(self, mock_client):
        mock_client.return_value.__enter__.side_effect = ConnectionRefusedError('Connection refused')
        status = self.manager.get_status()
        self.assertEqual(status['status'], 'offline')
        self.assertIn('refused', status['error'])

    def test_players_command(self, mock_client):
        self.session(mock_client).run.return_value = PLAYERS_REPLY
        success, response, elapsed = self.manager.execute_command('Players')
        self.assertTrue(success)
        self.assertEqual(response, 'Players connected (2): Alice, Bob')
        self.assertGreaterEqual(elapsed, 0)

    def test_servermsg_is_requoted(self, mock_client):
        session = self.session(mock_client)
        session.run.return_value = 'Message sent.'
        success, response, _ = self.manager.execute_command('servermsg "Restart in 5 minutes"')
        self.assertTrue(success)
        session.run.assert_called_once_with('servermsg', '"Restart in 5 minutes"')
        self.assertEqual(response, 'Message sent.')

    def test_other_commands_are_sent_verbatim(self, mock_client):
        session = self.session(mock_client)
        session.run.return_value = ''
        success, response, _ = self.manager.execute_command(' kickuser Bob ')
        session.run.assert_called_once_with('kickuser Bob')
        self.assertTrue(success)
        self.assertEqual(response, 'Command executed')

    def test_command_failure(self, mock_client):
        mock_client.return_value.__enter__.side_effect = TimeoutError('timed out')
        success, response, _ = self.manager.execute_command('save')
        self.assertFalse(success)
        self.assertEqual(response, 'timed out')

    def test_command_needs_password_and_text(self, mock_client):
        self.assertEqual(RConManager('127.0.0.1', 27015, '').execute_command('save')[0], False)
        self.assertEqual(self.manager.execute_command('  ')[0], False)
        mock_client.assert_not_called()


if __name__ == '__main__':
    unittest.main()
