"""NextBestMove Decision Engine package.

Ranks a user's pending relationship actions into a prioritized daily plan.

Layers:
    - core: Configuration, logging, exceptions
    - db: Models and the SQLite store
    - engine: Decision engine (state machine, scoring, lanes, capacity, plans)
    - integrations: External services (calendar free/busy)
    - content: Rendered output (plan digest)
"""

__version__ = "0.1.0"
