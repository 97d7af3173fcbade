"""Reusable invariant predicates for relational graph runs."""
