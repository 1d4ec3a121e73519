"""
Platformer AI - Online PPO agent for a real-time platformer host.

The host owns the game loop and talks to one explicitly constructed
PPOAgent: observations in, named action sets out, rewards and episode
boundaries back in. TickRunner plays the host role for any environment with
a reset()/step() interface, holding the loop at a fixed tick rate.
"""

from platformer_ai.agent import PPOAgent
from platformer_ai.runner import TickRunner, TickClock

__all__ = [
    "PPOAgent",
    "TickRunner",
    "TickClock",
]
