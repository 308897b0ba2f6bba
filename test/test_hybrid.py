import unittest

import numpy as np
from parameterized import parameterized

from isam import (
    DiscreteConditional, DiscreteFactor, Domain, GaussianConditional, GaussianFactor,
    HybridBayesTree, HybridConditional, HybridGaussianFactor, HybridISAM, UnknownKeyError
)
from isam.hybrid import eliminate_hybrid

M = Domain(['m'], [2])


def mixture():
    """x has a unit prior at 0 and one measurement at 1 (m=0) or 3 (m=1)."""
    return [
        GaussianFactor(['x'], [np.eye(1)], [0.0]),
        HybridGaussianFactor.from_factors(
            M, [GaussianFactor(['x'], [np.eye(1)], [1.0]), GaussianFactor(['x'], [np.eye(1)], [3.0])]
        ),
        DiscreteFactor.from_string(M, "0.5 0.5"),
    ]


class TestHybridFactor(unittest.TestCase):

    def test_branches(self):
        f = mixture()[1]
        self.assertEqual(f.keys, ('x', 'm'))
        self.assertEqual(f.continuous_keys, ('x',))
        factor, weight = f({'m': 1})
        np.testing.assert_allclose(factor.b, [3.0])
        self.assertEqual(weight, 0.0)
        with self.assertRaises(UnknownKeyError):
            f({})

    def test_branch_count(self):
        with self.assertRaises(ValueError):
            HybridGaussianFactor.from_factors(M, [GaussianFactor(['x'], [np.eye(1)], [0.0])])

    def test_branches_share_keys(self):
        with self.assertRaises(ValueError):
            HybridGaussianFactor.from_factors(
                M, [GaussianFactor(['x'], [np.eye(1)], [0.0]), GaussianFactor(['y'], [np.eye(1)], [0.0])]
            )

    def test_conditional_to_factor(self):
        branches = [
            GaussianConditional(['x'], [], [[1.0]], [], [1.0], [0.5]),
            GaussianConditional(['x'], [], [[1.0]], [], [2.0], [2.0]),
        ]
        conditional = HybridConditional.from_conditionals(M, branches)
        self.assertEqual(conditional.parents, ('m',))
        factor = conditional.to_factor()
        self.assertAlmostEqual(factor({'m': 0})[1], np.log(2.0))
        self.assertAlmostEqual(factor({'m': 1})[1], -np.log(2.0))


class TestHybridElimination(unittest.TestCase):

    def test_continuous_residual(self):
        factors = [
            HybridGaussianFactor.from_factors(
                M, lambda a: GaussianFactor(['x1'], [np.eye(1)], [float(a['m'])])
            ),
            GaussianFactor(['x1', 'x2'], [-np.eye(1), np.eye(1)], [1.0]),
        ]
        conditional, residual = eliminate_hybrid(factors, ['x1'])
        self.assertEqual(conditional.frontals, ('x1',))
        self.assertEqual(set(conditional.parents), {'x2', 'm'})
        self.assertEqual(residual.kind, 'hybrid')
        self.assertEqual(set(residual.keys), {'x2', 'm'})

    def test_discrete_residual(self):
        conditional, residual = eliminate_hybrid(mixture()[:2], ['x'])
        self.assertEqual(residual.kind, 'discrete')
        expected = np.exp(-np.array([1.0, 9.0]) / 4)
        np.testing.assert_allclose(
            residual.normalize().datavector(), expected / expected.sum()
        )
        np.testing.assert_allclose(conditional({'m': 0}).solve({})['x'], [0.5])
        np.testing.assert_allclose(conditional({'m': 1}).solve({})['x'], [1.5])


class TestHybridBayesTree(unittest.TestCase):

    def setUp(self):
        self.branches = [
            GaussianConditional(['y'], [], [[1.0]], [], [1.0], [1.0]),
            GaussianConditional(['y'], [], [[1.0]], [], [5.0], [1.0]),
        ]
        self.tree = HybridBayesTree()
        self.tree.insert(DiscreteConditional(['m'], DiscreteFactor.from_string(M, "0.3 0.7")))
        self.tree.insert(HybridConditional.from_conditionals(M, self.branches))

    def test_structure(self):
        self.assertIs(self.tree['y'].parent, self.tree['m'])
        self.tree.check_invariants()

    @parameterized.expand([(0, 1.0), (1, 5.0)])
    def test_selects_branch(self, m, expected):
        net = self.tree.gaussian_bayes_net({'m': m})
        self.assertEqual(len(net), 1)
        self.assertIs(net[0], self.branches[m])
        np.testing.assert_allclose(self.tree.optimize({'m': m})['y'], [expected])

    def test_missing_assignment(self):
        with self.assertRaises(UnknownKeyError):
            self.tree.optimize({})

    def test_mpe(self):
        self.assertEqual(self.tree.mpe(), {'m': 1})

    def test_continuous_chain_below_hybrid(self):
        child = GaussianConditional(['z'], ['y'], [[1.0]], [[[-1.0]]], [2.0], [1.0])
        self.tree.insert(child)
        values = self.tree.optimize({'m': 1})
        np.testing.assert_allclose(values['z'], [7.0])


class TestHybridISAM(unittest.TestCase):

    def test_batch(self):
        tree = HybridISAM.from_factors(mixture(), ['x', 'm'])
        p = np.exp(-np.array([1.0, 9.0]) / 4)
        p /= p.sum()
        np.testing.assert_allclose(tree['m'].conditional({'m': 0}), p[0])
        np.testing.assert_allclose(tree.optimize({'m': 0})['x'], [0.5])
        np.testing.assert_allclose(tree.optimize({'m': 1})['x'], [1.5])
        self.assertEqual(tree.mpe(), {'m': 0})

    def test_incremental_matches_batch(self):
        new = GaussianFactor(['x'], [np.eye(1)], [2.0])
        isam = HybridISAM(ordering='natural')
        isam.update(mixture())
        isam.update([new])
        isam.check_invariants()

        batch = HybridISAM.from_factors(mixture() + [new], ['x', 'm'])
        self.assertTrue(isam.equals(batch))
        for m in [0, 1]:
            np.testing.assert_allclose(
                isam.optimize({'m': m})['x'], batch.optimize({'m': m})['x'], atol=1e-9
            )
        self.assertEqual(isam.mpe(), batch.mpe())


if __name__ == '__main__':
    unittest.main()
