import unittest
from datetime import datetime, timezone

from errors import ValidationError
from normalize import models
from normalize.util import (
    filter_logins,
    normalize_github_event,
    parse_repos,
    parse_timestamp,
    validate_range,
)


class TestLoginsAndFilters(unittest.TestCase):
    def test_filter_logins_drops_bots_and_blanks(self):
        users = ['Alice', '', '  ', 'dependabot[bot]', 'bob', 'ALICE']
        self.assertEqual(filter_logins(users), ['alice', 'bob'])

    def test_parse_repos(self):
        self.assertEqual(parse_repos('Org/One, org/two,,'), ['org/one', 'org/two'])
        self.assertIsNone(parse_repos(''))
        self.assertIsNone(parse_repos(None))

    def test_parse_repos_rejects_bare_names(self):
        with self.assertRaises(ValidationError):
            parse_repos('org/one,two')

    def test_validate_range(self):
        self.assertEqual(validate_range('90'), 90)
        for bad in (0, 365, 'abc', None):
            with self.assertRaises(ValidationError):
                validate_range(bad)

    def test_parse_timestamp_variants(self):
        expected = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        self.assertEqual(parse_timestamp('2025-01-02T03:04:05Z'), expected)
        self.assertEqual(parse_timestamp(expected.timestamp()), expected)
        self.assertEqual(parse_timestamp(datetime(2025, 1, 2, 3, 4, 5)), expected)
        self.assertIsNone(parse_timestamp(''))


class TestNormalizeGithubEvent(unittest.TestCase):
    def test_push_event(self):
        raw = {
            'id': '101',
            'type': 'PushEvent',
            'actor': {'login': 'Alice'},
            'repo': {'name': 'Org/Repo'},
            'created_at': '2025-03-01T10:00:00Z',
            'payload': {'ref': 'refs/heads/main', 'size': 3, 'distinct_size': 2},
        }
        record = normalize_github_event(raw)
        self.assertEqual(record.category, models.PUSH)
        self.assertEqual(record.actor_login, 'alice')
        self.assertEqual(record.repo_name, 'org/repo')
        self.assertEqual(record.push_ref, 'refs/heads/main')
        self.assertEqual(record.push_num_commits, 2)
        self.assertEqual(record.event_id, '101')

    def test_pull_request_event(self):
        raw = {
            'id': 7,
            'type': 'PullRequestEvent',
            'actor': {'login': 'bob'},
            'repo': {'name': 'org/repo'},
            'created_at': '2025-03-02T10:00:00Z',
            'payload': {
                'action': 'closed',
                'pull_request': {
                    'number': 12,
                    'user': {'login': 'Bob'},
                    'merged': True,
                    'active_lock_reason': None,
                    'created_at': '2025-03-01T09:00:00Z',
                    'closed_at': '2025-03-02T10:00:00Z',
                },
            },
        }
        record = normalize_github_event(raw)
        self.assertEqual(record.category, models.PULL_REQUEST)
        self.assertEqual(record.pr_action, 'closed')
        self.assertEqual(record.pr_number, 12)
        self.assertEqual(record.pr_author_login, 'bob')
        self.assertTrue(record.pr_is_merged)
        self.assertEqual(record.pr_closed_at, datetime(2025, 3, 2, 10, tzinfo=timezone.utc))

    def test_watch_event_is_a_star(self):
        raw = {'type': 'WatchEvent', 'actor': {'login': 'c'}, 'repo': {'name': 'o/r'},
               'created_at': '2025-03-02T10:00:00Z', 'payload': {'action': 'started'}}
        self.assertEqual(normalize_github_event(raw).category, models.STAR)

    def test_unsupported_or_incomplete_events(self):
        self.assertIsNone(normalize_github_event({'type': 'CreateEvent', 'actor': {'login': 'a'},
                                                  'repo': {'name': 'o/r'}, 'created_at': '2025-01-01T00:00:00Z'}))
        self.assertIsNone(normalize_github_event({'type': 'PushEvent', 'repo': {'name': 'o/r'},
                                                  'created_at': '2025-01-01T00:00:00Z'}))
        self.assertIsNone(normalize_github_event('not a dict'))


if __name__ == '__main__':
    unittest.main()
