"""The notes store: an org-style outline used as a highlight database."""
