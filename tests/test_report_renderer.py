import csv
import io
import json
import unittest

from errors import ValidationError
from report.renderer import CATEGORY_COLUMNS, PROJECT_COLUMNS, render
from scoring.models import ContributionsByProject, ContributorCategoryTimeframe, ContributorScore, ContributorStat
from scoring.stats import paginate_contributor_stats


def _stat(login, commits):
    stat = ContributorStat(login)
    stat.add('commits', commits)
    stat.add('issue_comments', 1)
    return stat


class TestRenderer(unittest.TestCase):
    def setUp(self):
        self.page = paginate_contributor_stats([_stat('alice', 3), _stat('bob', 1)], skip=0, limit=1)

    def test_text_page_has_footer(self):
        out = render(self.page, 'text')
        self.assertIn('alice', out)
        self.assertNotIn('bob', out)
        self.assertIn('total contributions 4', out)
        self.assertIn('next page: yes', out)

    def test_markdown_table(self):
        out = render([_stat('alice', 3)], 'md', title='Contributor stats')
        lines = out.splitlines()
        self.assertEqual(lines[0], '# Contributor stats')
        self.assertTrue(any(line.startswith('| alice | 3 |') for line in lines))

    def test_csv_columns(self):
        rows = list(csv.DictReader(io.StringIO(render(self.page, 'csv'))))
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['login'], 'alice')
        self.assertEqual(rows[0]['total_contributions'], '3')
        self.assertEqual(rows[0]['comments'], '1')

    def test_json_page_envelope(self):
        doc = json.loads(render(self.page, 'json'))
        self.assertEqual(doc['meta']['item_count'], 2)
        self.assertEqual(doc['meta']['total_count'], 4)
        self.assertEqual(doc['data'][0]['login'], 'alice')

    def test_scores_default_columns(self):
        out = render([ContributorScore('alice', 30, 0.4, 0.48)], 'text')
        self.assertIn('oscr', out.splitlines()[0])
        self.assertIn('0.480', out)

    def test_breakdown_columns(self):
        project = ContributionsByProject('org/a')
        project.add('prs_created')
        self.assertIn('| org/a | 0 | 1 |', render([project], 'md', PROJECT_COLUMNS))
        day = ContributorCategoryTimeframe('2025-06-01T00:00:00.000Z', all=3, active=1, new=2)
        out = render([day], 'csv', CATEGORY_COLUMNS)
        self.assertIn('2025-06-01T00:00:00.000Z,3,1,2,0', out)

    def test_unknown_format(self):
        with self.assertRaises(ValidationError):
            render([], 'html')

    def test_empty_rows(self):
        self.assertEqual(json.loads(render([], 'json')), [])
        self.assertIn('login', render([], 'text'))


if __name__ == '__main__':
    unittest.main()
