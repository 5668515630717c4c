# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import os
import sys

sys.path.insert(0, os.path.abspath(".."))

# -- Project information -----------------------------------------------------

project = "domain-indexer"
author = "domain-indexer developers"

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
]

autodoc_mock_imports = ["web3", "sqlmodel", "beeprint"]

html_theme = "sphinx_rtd_theme"
html_show_sphinx = False
html_show_sourcelink = False
