import unittest

import numpy as np

from isam import (
    BayesTree, Clique, GaussianConditional, GaussianFactor, NoiseModel,
    StructuralError, UnknownKeyError, eliminate
)


def chain(n, sigma=0.5):
    factors = [GaussianFactor(['x1'], [np.eye(1)], [0.0])]
    for i in range(1, n):
        factors.append(
            GaussianFactor(
                [f'x{i}', f'x{i + 1}'], [-np.eye(1), np.eye(1)], [1.0],
                NoiseModel.isotropic(1, sigma),
            )
        )
    return factors


def star(leaves=3):
    factors = [GaussianFactor(['x0'], [np.eye(1)], [0.0])]
    for i in range(1, leaves + 1):
        factors.append(GaussianFactor(['x0', f'x{i}'], [-np.eye(1), np.eye(1)], [float(i)]))
    return factors


def conditional(frontal, parents=()):
    return GaussianConditional([frontal], parents, [[1.0]], [[[1.0]]] * len(parents), [0.0], [1.0])


class TestBayesTree(unittest.TestCase):

    def setUp(self):
        self.tree = BayesTree.from_bayes_net(eliminate(chain(4), ['x1', 'x2', 'x3', 'x4']))

    def test_two_variable_scenario(self):
        tree = BayesTree.from_bayes_net(eliminate(chain(2), ['x1', 'x2']))
        self.assertEqual(len(tree), 2)
        self.assertEqual(tree.roots, [tree['x2']])
        self.assertIs(tree['x1'].parent, tree['x2'])
        self.assertEqual(tree['x1'].separator, ('x2',))
        self.assertEqual(repr(tree['x1']), 'Clique(x1 | x2)')

    def test_find(self):
        for key in ['x1', 'x2', 'x3', 'x4']:
            self.assertIn(key, self.tree.find(key).frontals)
            self.assertIn(key, self.tree)
        self.assertIsNone(self.tree.find('x9'))
        with self.assertRaises(UnknownKeyError):
            self.tree['x9']

    def test_chain_is_a_path(self):
        self.assertEqual(self.tree['x1'].depth(), 3)
        self.assertEqual(
            [c.frontals for c in self.tree['x1'].ancestors()], [('x2',), ('x3',), ('x4',)]
        )
        self.assertEqual(len(self.tree.roots[0].subtree()), 4)
        self.tree.check_invariants()

    def test_optimize(self):
        net = eliminate(chain(4), ['x1', 'x2', 'x3', 'x4'])
        values = self.tree.optimize()
        expected = net.optimize()
        for key, value in expected.items():
            np.testing.assert_allclose(values[key], value)
        np.testing.assert_allclose(values['x4'], [3.0])

    def test_to_bayes_net(self):
        net = self.tree.to_bayes_net()
        self.assertEqual(net.keys(), ['x1', 'x2', 'x3', 'x4'])
        self.assertTrue(BayesTree.from_bayes_net(net).equals(self.tree))

    def test_equals(self):
        other = BayesTree.from_bayes_net(eliminate(chain(4), ['x1', 'x2', 'x3', 'x4']))
        self.assertTrue(self.tree.equals(other))
        perturbed = BayesTree.from_bayes_net(eliminate(chain(4, sigma=0.6), ['x1', 'x2', 'x3', 'x4']))
        self.assertFalse(self.tree.equals(perturbed))
        shorter = BayesTree.from_bayes_net(eliminate(chain(3), ['x1', 'x2', 'x3']))
        self.assertFalse(self.tree.equals(shorter))


class TestInsert(unittest.TestCase):

    def setUp(self):
        self.tree = BayesTree()
        self.a = self.tree.insert(conditional('a'))

    def test_parent_is_deepest_owner(self):
        c = self.tree.insert(conditional('c', ['a']))
        d = self.tree.insert(conditional('d', ['c', 'a']))
        self.assertIs(c.parent, self.a)
        self.assertIs(d.parent, c)
        self.assertEqual(self.tree.roots, [self.a])
        self.tree.check_invariants()

    def test_missing_separator(self):
        with self.assertRaises(StructuralError):
            self.tree.insert(conditional('c', ['z']))

    def test_duplicate_frontal(self):
        with self.assertRaises(StructuralError):
            self.tree.insert(conditional('a'))

    def test_disjoint_subtrees(self):
        self.tree.insert(conditional('b'))
        with self.assertRaises(StructuralError):
            self.tree.insert(conditional('c', ['a', 'b']))

    def test_invalid_tree(self):
        self.tree.valid = False
        with self.assertRaises(StructuralError):
            self.tree.insert(conditional('b'))

    def test_reattach_disjoint(self):
        self.tree.insert(conditional('b'))
        orphan = Clique(conditional('c', ['a', 'b']))
        with self.assertRaises(StructuralError):
            self.tree.reattach([orphan])


class TestRemoveTop(unittest.TestCase):

    def setUp(self):
        self.tree = BayesTree.from_bayes_net(eliminate(chain(4), ['x1', 'x2', 'x3', 'x4']))

    def test_chain(self):
        x2 = self.tree['x2']
        freed, orphans = self.tree.remove_top(['x3'])
        self.assertEqual(len(freed), 2)
        self.assertEqual(orphans, [x2])
        self.assertIsNone(x2.parent)
        self.assertEqual(sorted(self.tree.keys()), ['x1', 'x2'])
        self.assertEqual(self.tree.roots, [])
        self.assertEqual(sorted(freed.keys()), ['x3', 'x4'])

    def test_reeliminate_restores_tree(self):
        original = BayesTree.from_bayes_net(eliminate(chain(4), ['x1', 'x2', 'x3', 'x4']))
        freed, orphans = self.tree.remove_top(['x3'])
        for c in reversed(eliminate(freed, ['x3', 'x4'])):
            self.tree.insert(c)
        self.tree.reattach(orphans)
        self.tree.check_invariants()
        self.assertTrue(self.tree.equals(original))

    def test_unknown_keys_ignored(self):
        freed, orphans = self.tree.remove_top(['x9'])
        self.assertEqual(len(freed), 0)
        self.assertEqual(orphans, [])
        self.assertEqual(len(self.tree), 4)

    def test_star(self):
        tree = BayesTree.from_bayes_net(eliminate(star(), ['x1', 'x2', 'x3', 'x0']))
        self.assertEqual(len(tree.roots[0].children), 3)
        freed, orphans = tree.remove_top(['x0'])
        self.assertEqual(len(freed), 1)
        self.assertEqual(sorted(c.frontals[0] for c in orphans), ['x1', 'x2', 'x3'])
        self.assertEqual(sorted(tree.keys()), ['x1', 'x2', 'x3'])

    def test_leaf(self):
        freed, orphans = self.tree.remove_top(['x1'])
        self.assertEqual(len(freed), 4)
        self.assertEqual(orphans, [])
        self.assertEqual(len(self.tree), 0)


class TestInvariants(unittest.TestCase):

    def setUp(self):
        self.tree = BayesTree.from_bayes_net(eliminate(star(), ['x1', 'x2', 'x3', 'x0']))

    def test_valid(self):
        self.tree.check_invariants()

    def test_inconsistent_index(self):
        self.tree.nodes['x1'] = self.tree['x2']
        with self.assertRaises(StructuralError):
            self.tree.check_invariants()

    def test_unreachable_clique(self):
        self.tree.roots[0].children.pop()
        with self.assertRaises(StructuralError):
            self.tree.check_invariants()

    def test_running_intersection(self):
        leaf = self.tree['x1']
        self.tree.roots[0].children.remove(leaf)
        leaf.set_parent(None)
        self.tree.roots.append(leaf)
        with self.assertRaises(StructuralError):
            self.tree.check_invariants()


if __name__ == '__main__':
    unittest.main()
