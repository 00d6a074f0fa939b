"""
Feature modules live under this package.

Keep module boundaries clean: each module owns its models, service and API blueprint,
while reusing platform primitives (auth, RBAC, audit, image host, DB session).
"""
