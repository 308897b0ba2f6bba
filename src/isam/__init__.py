"""Main entry point for the isam package.

The package factors growing graphs of measurement constraints into Bayes
trees and keeps them up to date incrementally as new measurements arrive.
It exposes the factor and conditional kinds (Gaussian, discrete and hybrid),
the elimination engine, the Bayes tree with its incremental updater, and
the resolver that solves a hybrid tree for a fixed discrete assignment.
"""
from . import elimination, ordering
from .bayes_net import BayesNet, DiscreteBayesNet, GaussianBayesNet
from .bayes_tree import BayesTree, Clique
from .decision_tree import DecisionTree
from .discrete import DiscreteConditional, DiscreteFactor
from .domain import DiscreteValues, Domain, Key
from .elimination import eliminate
from .equality import NonlinearEquality
from .errors import NumericDegeneracy, StructuralError, UnknownKeyError
from .factor_graph import FactorGraph
from .gaussian import GaussianConditional, GaussianFactor, NoiseModel
from .hybrid import HybridConditional, HybridGaussianFactor
from .hybrid_bayes_tree import HybridBayesTree, HybridISAM
from .isam import ISAM
from .ordering import Ordering

__all__ = [
    'BayesNet',
    'BayesTree',
    'Clique',
    'DecisionTree',
    'DiscreteBayesNet',
    'DiscreteConditional',
    'DiscreteFactor',
    'DiscreteValues',
    'Domain',
    'FactorGraph',
    'GaussianBayesNet',
    'GaussianConditional',
    'GaussianFactor',
    'HybridBayesTree',
    'HybridConditional',
    'HybridGaussianFactor',
    'HybridISAM',
    'ISAM',
    'Key',
    'NoiseModel',
    'NonlinearEquality',
    'NumericDegeneracy',
    'Ordering',
    'StructuralError',
    'UnknownKeyError',
    'eliminate',
    'elimination',
    'ordering',
]
