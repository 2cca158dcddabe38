"""Content generation package.

Generates:
    - Daily plan digest
"""

from nextbestmove.content.plan_digest import PlanDigest, generate_plan_digest, render_plan_digest

__all__ = [
    "PlanDigest",
    "generate_plan_digest",
    "render_plan_digest",
]
