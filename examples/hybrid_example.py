import numpy as np
from isam import DiscreteFactor, Domain, GaussianFactor, HybridGaussianFactor, HybridISAM

# a scalar x observed by a sensor that is either working (m=0) or biased by +2 (m=1)
mode = Domain(['m'], [2])
sensor = HybridGaussianFactor.from_factors(
    mode,
    lambda a: GaussianFactor(['x'], [np.eye(1)], [1.0 - 2.0 * a['m']]),
)

factors = [
    GaussianFactor(['x'], [np.eye(1)], [0.0]),
    sensor,
    DiscreteFactor.from_string(mode, "0.9 0.1"),
]

tree = HybridISAM.from_factors(factors, ordering=['x', 'm'])
print(tree['m'].conditional.table.datavector())

for m in range(2):
    print(m, tree.optimize({'m': m}))

# a second, unbiased measurement of x
tree.update([GaussianFactor(['x'], [np.eye(1)], [1.0])])
print(tree['m'].conditional.table.datavector())
print('most probable sensor mode', tree.mpe())
