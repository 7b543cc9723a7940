"""
Inspection workflow kernel.

Pure domain (state graph, rules, actions), read-only selectors, flush-only
services, ORM models and the database layer.  The kernel never imports from
``inspection_config`` or ``inspection_services``.
"""
