"""
Routing Engine.

Assigns newly accepted leads to owners according to tenant routing rules.

Main components:
- Operators: one class per condition operator family, keyed by ConditionOperator
- Strategies: round-robin, least-loaded and capacity-weighted owner selection
- Core: condition evaluation, rule parsing, rule engine, pool assignment, orchestration

Usage:
    from leadops.routing_engine.core import RoutingOrchestrator

    orchestrator = RoutingOrchestrator(store)
    result = await orchestrator.route_lead(lead, rules, tenant_id)
"""

__version__ = "1.0.0"
__all__ = ["operators", "strategies", "core"]
