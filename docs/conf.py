# Sphinx configuration for the djedops-workflows API reference.

from __future__ import annotations

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent.parent / "src"
sys.path.insert(0, str(SRC))

from djedops_workflows import __version__  # noqa: E402

project = "DjedOps Workflows"
author = "DjedOps"
copyright = f"2025, {author}"
version = release = __version__

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx.ext.intersphinx",
    "sphinx_autodoc_typehints",
]

exclude_patterns = ["_build"]
html_theme = "sphinx_rtd_theme"

# Pydantic models expose many generated members; document only what is declared.
autodoc_default_options = {
    "members": True,
    "member-order": "bysource",
    "exclude-members": "model_config,model_fields,model_computed_fields",
}
autodoc_typehints = "description"
napoleon_google_docstring = True
napoleon_numpy_docstring = False

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "pydantic": ("https://docs.pydantic.dev/latest", None),
    "requests": ("https://requests.readthedocs.io/en/latest", None),
}
