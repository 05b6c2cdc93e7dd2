# Sphinx configuration for the troxia documentation.

import os
import sys
sys.path.insert(0, os.path.abspath('../../src'))

# heyoka wheels are not available on every docs builder
autodoc_mock_imports = ['heyoka']

# ========== PROJECT ==========

project = 'troxia'
copyright = '2026, troxia developers'
author = 'troxia developers'
release = '0.1.0'

# ========== BUILD ==========

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',
    'sphinx.ext.autosummary',
    'sphinx.ext.mathjax',
    'sphinx.ext.viewcode',
    'myst_parser',
]

autosummary_generate = True
autodoc_member_order = 'bysource'
napoleon_google_docstring = False
napoleon_numpy_docstring = True
source_suffix = {'.rst': 'restructuredtext', '.md': 'markdown'}
exclude_patterns = []

# ========== HTML ==========

html_theme = 'sphinx_rtd_theme'
html_title = 'troxia'
