"""
Platformer Course Environment

A pure-Python side-scrolling course used to train and exercise the agent
without the real host. Features:

- ASCII-defined tile maps with solids, spikes, pits and a goal column
- Patrolling seekers reported as nearby entities
- 15x15 tile grid around the player, host-style observation records
- Deterministic physics at one step per 20 Hz tick
"""

from game.course import CourseEnv, CourseMap, Seeker, DEFAULT_COURSE

__all__ = [
    "CourseEnv", "CourseMap", "Seeker", "DEFAULT_COURSE",
]
