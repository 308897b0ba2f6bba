import unittest

from isam import DecisionTree, Domain, UnknownKeyError


class TestDomain(unittest.TestCase):

    def setUp(self):
        self.domain = Domain(['a', 'b', 'c'], [2, 3, 4])

    def test_project_marginalize(self):
        self.assertEqual(self.domain.project(['c', 'a']), Domain(['c', 'a'], [4, 2]))
        self.assertEqual(self.domain.marginalize(['b']), Domain(['a', 'c'], [2, 4]))

    def test_merge(self):
        other = Domain(['c', 'd'], [4, 5])
        self.assertEqual(self.domain.merge(other), Domain(['a', 'b', 'c', 'd'], [2, 3, 4, 5]))
        with self.assertRaises(ValueError):
            self.domain.merge(Domain(['a'], [7]))

    def test_intersect_supports(self):
        other = Domain(['c', 'a', 'z'], [4, 2, 9])
        self.assertEqual(self.domain.intersect(other), Domain(['a', 'c'], [2, 4]))
        self.assertTrue(self.domain.supports('b'))
        self.assertTrue(self.domain.supports(['a', 'c']))
        self.assertFalse(self.domain.supports(['a', 'z']))
        self.assertTrue(self.domain.contains(Domain(['b'], [3])))

    def test_size(self):
        self.assertEqual(self.domain.size(), 24)
        self.assertEqual(self.domain.size(['b', 'c']), 12)
        self.assertEqual(Domain([], []).size(), 1)
        self.assertEqual(Domain.fromdict({'m': 2, 'n': 5}).size(), 10)

    def test_invalid(self):
        with self.assertRaises(ValueError):
            Domain(['a', 'a'], [2, 2])
        with self.assertRaises(ValueError):
            Domain(['a'], [2, 3])

    def test_assignments(self):
        assignments = list(self.domain.assignments())
        self.assertEqual(len(assignments), self.domain.size())
        self.assertEqual(assignments[0], {'a': 0, 'b': 0, 'c': 0})
        self.assertEqual(assignments[-1], {'a': 1, 'b': 2, 'c': 3})
        self.assertEqual(assignments[1], {'a': 0, 'b': 0, 'c': 1})


class TestDecisionTree(unittest.TestCase):

    def setUp(self):
        self.domain = Domain(['m', 'n'], [2, 3])
        self.tree = DecisionTree.from_function(self.domain, lambda a: (a['m'], a['n']))

    def test_lookup(self):
        for assignment in self.domain.assignments():
            self.assertEqual(self.tree(assignment), (assignment['m'], assignment['n']))

    def test_extra_keys_ignored(self):
        self.assertEqual(self.tree({'m': 1, 'n': 2, 'other': 5}), (1, 2))

    def test_missing_key(self):
        with self.assertRaises(UnknownKeyError):
            self.tree({'m': 1})

    def test_out_of_range(self):
        with self.assertRaises(ValueError):
            self.tree({'m': 2, 'n': 0})

    def test_map_and_items(self):
        doubled = self.tree.map(lambda leaf: leaf[0] * 10 + leaf[1])
        self.assertEqual(doubled({'m': 1, 'n': 2}), 12)
        self.assertEqual(len(list(doubled.items())), 6)
        self.assertEqual(len(doubled), 6)

    def test_empty_domain(self):
        tree = DecisionTree.from_function(Domain([], []), lambda a: 'only')
        self.assertEqual(tree({}), 'only')
        self.assertEqual(tree.leaves(), ['only'])


if __name__ == '__main__':
    unittest.main()
