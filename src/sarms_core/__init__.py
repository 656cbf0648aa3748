"""SARMS Core - priority classification and status workflow for software requests.

Modules:
- priority: impact analysis → priority tier and explanation
- state_machine: legal status transitions, role policy and required inputs
- crud: request lifecycle over an injected RequestStore
- api: FastAPI application
"""

__version__ = "1.0.0"
