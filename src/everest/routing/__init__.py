"""Routing: a tree of prefix- and host-scoped contexts.

Contexts are configured lazily, on the first request that reaches them,
and dispatch walks the tree depth first until a route answers.
"""
