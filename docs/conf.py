# sphinx-apidoc -o . ../src/isam
# sphinx-build -b html . _build/html

import sys
import os

sys.path.insert(0, os.path.abspath('../src'))

project = 'isam'
copyright = '2025'

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
    'sphinx.ext.doctest',
]

autosummary_generate = True

autodoc_typehints = "signature"
autoclass_content = "both"

exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']
