"""Reusable patterns shared by the Opsdesk verticals.

- repository: generic async CRUD with row-locked read-modify-write
"""
