"""
mockapi Scenario Module

Declarative expectation definitions.

This module provides:
- YAML mock scenarios
- Endpoint descriptors and expectation helpers
"""

from .scenario_config import MockScenario, ScenarioExpectation, build_response
from .endpoints import Endpoint, EndpointMock, BodyFormat, EndpointResponseFormat

__all__ = [
    'MockScenario',
    'ScenarioExpectation',
    'build_response',
    'Endpoint',
    'EndpointMock',
    'BodyFormat',
    'EndpointResponseFormat',
]
