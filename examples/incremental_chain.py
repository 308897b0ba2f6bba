import logging

import numpy as np
from isam import ISAM, GaussianFactor, NoiseModel

logging.basicConfig(level=logging.INFO)

# a robot moving along a line, measuring its displacement at every step
np.random.seed(0)
true_positions = np.cumsum(np.random.rand(20))
odometry = np.diff(true_positions) + 0.05 * np.random.randn(19)

isam = ISAM(ordering='natural')

# anchor the first pose
isam.update([GaussianFactor(['x0'], [np.eye(1)], [true_positions[0]], NoiseModel.isotropic(1, 0.01))])

for t, delta in enumerate(odometry, start=1):
    new = [GaussianFactor([f'x{t-1}', f'x{t}'], [-np.eye(1), np.eye(1)], [delta], NoiseModel.isotropic(1, 0.05))]

    # every fifth step a loop closure back to the start
    if t % 5 == 0:
        measured = true_positions[t] - true_positions[0] + 0.01 * np.random.randn()
        new.append(GaussianFactor(['x0', f'x{t}'], [-np.eye(1), np.eye(1)], [measured], NoiseModel.isotropic(1, 0.01)))

    isam.update(new)

isam.check_invariants()
estimate = isam.optimize()
print(np.array([estimate[f'x{t}'][0] for t in range(20)]) - true_positions)

# marginal uncertainty of the last pose
print(isam.to_bayes_net().marginal_covariance(['x19']))
