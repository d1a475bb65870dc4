"""
Shared fixtures for PyATN tests.
"""

import pytest

from pyatn.core.equations import ModelEquations
from pyatn.core.foodweb import FoodWeb
from pyatn.core.params import ModelParameters


@pytest.fixture
def producer_consumer_web():
    """Producer 0 eaten by consumer 1."""
    web = FoodWeb()
    web.add_producer_node(0)
    web.add_consumer_node(1)
    web.add_link(0, 1)
    return web


@pytest.fixture
def lone_producer_web():
    web = FoodWeb()
    web.add_producer_node(0)
    return web


@pytest.fixture
def lone_consumer_web():
    web = FoodWeb()
    web.add_consumer_node(0)
    return web


@pytest.fixture
def producer_consumer_equations(producer_consumer_web):
    params = ModelParameters.for_food_web(producer_consumer_web)
    return ModelEquations(producer_consumer_web, params)


@pytest.fixture
def batch_food_web():
    """Web with non-contiguous IDs, as used by node configs.

    Node 99 is never configured, so subweb selection matters.
    """
    web = FoodWeb()
    web.add_producer_node(3)
    for node_id in (55, 71, 74, 80, 99):
        web.add_consumer_node(node_id)
    web.add_link(3, 55)
    web.add_link(3, 71)
    web.add_link(55, 74)
    web.add_link(71, 74)
    web.add_link(74, 80)
    web.add_link(80, 99)
    return web


BATCH_NODE_CONFIG = (
    "5,[3],4112.19,20.0,2,K=3134.36,R=1.0,0,"
    "[55],3975.08,0.213,1,X=0.54461,0,"
    "[71],216.842,4.99,1,X=0.233554,0,"
    "[74],1438.01,23.8,1,X=0.642048,0,"
    "[80],128.628,41.5,1,X=0.501792,0"
)


@pytest.fixture
def batch_node_config():
    return BATCH_NODE_CONFIG
