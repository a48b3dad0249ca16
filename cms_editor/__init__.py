"""
Nex CMS content editing model.

Schema-driven editing of the site's pages and collections: validation,
form state, repeatable groups, load reconciliation, submit pipeline,
content cache and activity log.
"""

__version__ = "1.0.0"
