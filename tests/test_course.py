"""
Tests for the demo platformer course.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from core.codec import Tile, VectorCodec
from game.course import (
    CourseEnv, CourseMap, Seeker, DEFAULT_COURSE, DEATH_PENALTY, GOAL_REWARD,
)

NO_INPUT = {}
RIGHT = {'right': True}


def run_until_done(env, actions, limit=100):
    for _ in range(limit):
        record, reward, done, info = env.step(actions)
        if done:
            return record, reward, info
    raise AssertionError("episode did not finish")


class TestCourseMap:
    def test_parse_default(self):
        course = CourseMap(DEFAULT_COURSE)
        assert course.width == 40
        assert course.height == 12
        assert course.start == (1.0, 8.0)
        assert course.goal_x == 38.0
        assert len(course.seeker_spawns) == 1

    def test_ragged_rows(self):
        with pytest.raises(ValueError):
            CourseMap(["...", ".."])

    def test_tile_at_edges(self):
        course = CourseMap(DEFAULT_COURSE)
        assert course.tile_at(-1, 5) == Tile.SOLID
        assert course.tile_at(40, 5) == Tile.SOLID
        assert course.tile_at(5, -3) == Tile.EMPTY
        assert course.tile_at(5, 20) == Tile.EMPTY
        assert course.tile_at(0, 9) == Tile.SOLID
        assert course.tile_at(26, 9) == Tile.SPIKE_UP

    def test_grid_around(self):
        course = CourseMap(DEFAULT_COURSE)
        grid = course.grid_around(1.4, 8.5)
        assert len(grid) == 225
        assert grid[7 * 15 + 7] == Tile.EMPTY
        assert grid[8 * 15 + 7] == Tile.SOLID


class TestSeeker:
    def test_patrol_reverses(self):
        seeker = Seeker(x=5.0, y=0.0, x_min=4.0, x_max=5.5, speed=0.5)
        seeker.tick()
        assert seeker.x == 5.5
        assert seeker.speed == -0.5
        seeker.tick()
        assert seeker.x == 5.0

    def test_overlaps(self):
        seeker = Seeker(x=5.0, y=2.0, x_min=0.0, x_max=10.0)
        assert seeker.overlaps(4.5, 2.5, 0.75, 1.0)
        assert not seeker.overlaps(7.0, 2.0, 0.75, 1.0)


class TestCourseEnv:
    def test_reset_record(self):
        env = CourseEnv()
        record = env.reset()
        assert record['x'] == 1.0 and record['y'] == 8.0
        assert record['grounded'] is True
        assert record['dashes_left'] == 1
        assert len(record['grid']) == 225
        assert len(record['enemies']) == 4
        assert record['progress'][0] == pytest.approx(1.0)
        assert VectorCodec().encode(record).shape == (275,)

    def test_standing_still(self):
        env = CourseEnv()
        env.reset()
        for _ in range(5):
            record, reward, done, info = env.step(NO_INPUT)
        assert not done
        assert record['grounded']
        assert record['y'] == 8.0
        assert reward == pytest.approx(-0.01)

    def test_running_right_earns_progress(self):
        env = CourseEnv()
        env.reset()
        _, reward, _, _ = env.step(RIGHT)
        assert env.x > 1.0
        assert reward > 0.0

    def test_jump(self):
        env = CourseEnv()
        env.reset()
        record, _, _, _ = env.step({'jump': True})
        assert record['y'] < 8.0
        assert record['vy'] < 0.0
        assert not record['grounded']

    def test_dash_uses_charge(self):
        env = CourseEnv()
        env.reset()
        env.step({'jump': True})
        record, _, _, _ = env.step({'dash': True, 'right': True})
        assert record['dashes_left'] == 0
        assert record['vx'] > 0.5

    def test_fall_is_death(self):
        env = CourseEnv(layout=["......", ".S....", "#....#"])
        env.reset()
        _, reward, info = run_until_done(env, NO_INPUT)
        assert info['died']
        assert not info['reached_goal']
        assert reward < DEATH_PENALTY + 1.0

    def test_spike_is_death(self):
        env = CourseEnv(layout=[".S^...", "######"])
        env.reset()
        _, reward, info = run_until_done(env, RIGHT)
        assert info['died']
        assert reward < DEATH_PENALTY + 1.0

    def test_goal(self):
        env = CourseEnv(layout=["S.G", "###"])
        env.reset()
        _, reward, info = run_until_done(env, RIGHT)
        assert info['reached_goal']
        assert not info['died']
        assert reward > GOAL_REWARD - 1.0

    def test_truncation(self):
        env = CourseEnv(max_ticks=5)
        env.reset()
        _, _, info = run_until_done(env, NO_INPUT, limit=5)
        assert info['truncated']
        assert info['tick'] == 5

    def test_step_after_done(self):
        env = CourseEnv(max_ticks=1)
        env.reset()
        env.step(NO_INPUT)
        with pytest.raises(RuntimeError):
            env.step(NO_INPUT)
        env.reset()
        env.step(NO_INPUT)

    def test_render(self):
        env = CourseEnv()
        env.reset()
        frame = env.render().split('\n')
        assert len(frame) == 12
        assert frame[8][1] == 'P'
        assert 'E' in frame[8]


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
