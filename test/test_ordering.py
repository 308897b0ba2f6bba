import unittest

import numpy as np

from isam import DiscreteFactor, Domain, FactorGraph, GaussianFactor, HybridGaussianFactor, Ordering
from isam.ordering import fill_in, greedy_order


def star(leaves=3):
    factors = [GaussianFactor(['x0'], [np.eye(1)], [0.0])]
    for i in range(1, leaves + 1):
        factors.append(GaussianFactor(['x0', f'x{i}'], [np.eye(1), -np.eye(1)], [1.0]))
    return FactorGraph(factors)


class TestOrdering(unittest.TestCase):

    def test_steps(self):
        ordering = Ordering(['x1', ('x2', 'x3'), ['x4']])
        self.assertEqual(ordering.steps, (('x1',), ('x2', 'x3'), ('x4',)))
        self.assertEqual(ordering.keys(), ['x1', 'x2', 'x3', 'x4'])
        self.assertEqual(len(ordering), 3)

    def test_natural(self):
        graph = FactorGraph([
            GaussianFactor(['x3', 'x1'], [np.eye(1), np.eye(1)], [0.0]),
            GaussianFactor(['x2'], [np.eye(1)], [0.0]),
        ])
        self.assertEqual(Ordering.natural(graph).keys(), ['x3', 'x1', 'x2'])
        self.assertEqual(Ordering.sorted(graph).keys(), ['x1', 'x2', 'x3'])

    def test_discrete_last(self):
        m = Domain(['m'], [2])
        graph = FactorGraph([
            DiscreteFactor.ones(m),
            HybridGaussianFactor.from_factors(
                m, lambda a: GaussianFactor(['x'], [np.eye(1)], [float(a['m'])])
            ),
            GaussianFactor(['x', 'y'], [np.eye(1), np.eye(1)], [0.0]),
        ])
        for method in ['natural', 'sorted', 'greedy']:
            self.assertEqual(Ordering.create(graph, method).keys()[-1], 'm')

    def test_greedy_star(self):
        order, cost = greedy_order(star())
        # x0 and x3 tie at degree one after two leaves are gone; x0 appears first
        self.assertEqual(order, ['x1', 'x2', 'x0', 'x3'])
        self.assertEqual(cost, 3)

    def test_greedy_stochastic(self):
        np.random.seed(0)
        ordering = Ordering.greedy(star(), stochastic=True)
        self.assertEqual(sorted(ordering.keys()), ['x0', 'x1', 'x2', 'x3'])

    def test_fill_in(self):
        graph = star()
        self.assertEqual(fill_in(graph, Ordering(['x1', 'x2', 'x3', 'x0'])), 0)
        self.assertEqual(fill_in(graph, Ordering(['x0', 'x1', 'x2', 'x3'])), 3)

    def test_create(self):
        graph = star()
        ordering = Ordering.create(graph, lambda g: list(reversed(g.keys())))
        self.assertEqual(ordering.keys(), ['x3', 'x2', 'x1', 'x0'])
        with self.assertRaises(ValueError):
            Ordering.create(graph, 'colamd')

    def test_validate(self):
        ordering = Ordering(['a', 'b'])
        ordering.validate(['b', 'a'])
        with self.assertRaises(ValueError):
            ordering.validate(['a'])
        with self.assertRaises(ValueError):
            ordering.validate(['a', 'b', 'c'])
        with self.assertRaises(ValueError):
            Ordering(['a', ()])


if __name__ == '__main__':
    unittest.main()
