from setuptools import setup, find_packages

with open('requirements.txt') as f:
    requirements = f.read().splitlines()

setup(
    name='isam',
    version='0.1.0',
    description='Incremental Bayes tree inference over Gaussian, discrete and hybrid factor graphs',
    license='Apache License 2.0',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    python_requires='>=3.10',
    install_requires=requirements,
    extras_require={'test': ['pytest', 'parameterized']},
)
