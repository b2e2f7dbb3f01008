"""NiceGUI pages for Arborist.

Import this module to register all page routes with NiceGUI.
"""

from arborist.pages import tree_page

__all__ = ["tree_page"]

# Touch modules to prevent linter from removing "unused" imports.
# These imports register @ui.page decorators as a side effect.
_PAGES = (tree_page,)
