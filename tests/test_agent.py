"""
Tests for the PPO agent boundary and the tick runner.
"""

import sys
import os
import json
import tempfile
import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from core.codec import ACTION_NAMES
from core.config import AgentConfig
from core.errors import ArchitectureMismatchError, WeightFormatError
from game.course import CourseEnv
from platformer_ai.agent import PPOAgent, to_native
from platformer_ai.runner import TickRunner, TickClock


def small_config(**overrides):
    params = dict(hidden_sizes=(16, 8), rollout_size=0, minibatch_size=8, seed=7)
    params.update(overrides)
    return AgentConfig(**params)


def random_record(rng):
    return {
        'x': float(rng.uniform(0, 40)),
        'y': float(rng.uniform(0, 12)),
        'vx': float(rng.normal()),
        'vy': float(rng.normal()),
        'grounded': bool(rng.random() < 0.5),
        'dashes_left': int(rng.integers(0, 2)),
        'wallcheck': False,
        'grab': False,
        'progress': (1.0, 0.0),
        'enemies': [float(v) for v in rng.uniform(0, 10, size=8)],
        'grid': [int(v) for v in rng.integers(0, 2, size=225)],
    }


class TestPPOAgent:
    def test_creation(self):
        agent = PPOAgent(small_config())
        assert agent.observation_size == 275
        assert agent.network.hidden_sizes == (16, 8)
        assert agent.buffer.size == 0

    def test_dict_config(self):
        agent = PPOAgent({'hidden_sizes': [12], 'rollout_size': 0})
        assert agent.network.hidden_sizes == (12,)

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            PPOAgent(small_config(gamma=2.0))

    def test_action_before_observation(self):
        agent = PPOAgent(small_config())
        actions = agent.get_action()
        assert set(actions.keys()) == set(ACTION_NAMES)
        assert not any(actions.values())
        assert agent.buffer.size == 0

    def test_observation_buffers_step(self):
        agent = PPOAgent(small_config())
        agent.receive_observation(random_record(np.random.default_rng(0)))
        actions = agent.get_action()
        assert list(actions.keys()) == list(ACTION_NAMES)
        assert all(isinstance(v, bool) for v in actions.values())
        assert agent.buffer.size == 1
        assert agent.total_steps == 1
        probs = agent.last_probs
        assert probs.shape == (7,)
        assert np.all((probs > 0.0) & (probs < 1.0))
        assert np.isfinite(agent.last_value)

    def test_malformed_observation(self):
        agent = PPOAgent(small_config())
        agent.receive_observation({'x': 'fast', 'grid': None, 'enemies': 3})
        agent.receive_observation(None)
        agent.get_action()
        assert agent.buffer.size == 2

    def test_deterministic_action(self):
        agent = PPOAgent(small_config())
        agent.receive_observation(random_record(np.random.default_rng(1)))
        first = agent.get_action(deterministic=True)
        second = agent.get_action(deterministic=True)
        assert first == second
        expected = agent.last_probs > 0.5
        assert [first[name] for name in ACTION_NAMES] == list(expected)
        np.testing.assert_array_equal(agent.buffer.actions[-1], expected.astype(np.float32))

    def test_same_seed_same_behaviour(self):
        record = random_record(np.random.default_rng(2))
        a = PPOAgent(small_config(seed=3))
        b = PPOAgent(small_config(seed=3))
        for _ in range(5):
            a.receive_observation(record)
            b.receive_observation(record)
            assert a.get_action() == b.get_action()
        np.testing.assert_array_equal(a.last_probs, b.last_probs)

    def test_rewards_and_episode_end(self):
        agent = PPOAgent(small_config())
        rng = np.random.default_rng(3)
        for _ in range(3):
            agent.receive_observation(random_record(rng))
            agent.get_action()
        agent.store_reward(1.0)
        agent.store_reward(0.5)
        agent.end_episode(-15.0)

        assert agent.buffer.rewards == [1.0, 0.5, -15.0]
        assert agent.buffer.dones == [False, False, True]
        assert agent.episodes_completed == 1
        assert agent.episode_rewards == [pytest.approx(-13.5)]

    def test_end_episode_after_reward(self):
        agent = PPOAgent(small_config())
        agent.receive_observation(random_record(np.random.default_rng(4)))
        agent.store_reward(2.0)
        agent.end_episode(10.0)
        assert agent.buffer.rewards == [2.0]
        assert agent.buffer.dones == [True]
        assert agent.episode_rewards == [pytest.approx(2.0)]

    def test_update_policy(self):
        agent = PPOAgent(small_config())
        rng = np.random.default_rng(5)
        for _ in range(20):
            agent.receive_observation(random_record(rng))
            agent.get_action()
            agent.store_reward(float(rng.normal()))
        agent.end_episode(0.0)

        before = agent.network.arena.copy()
        stats = agent.update_policy()
        assert stats is not None
        for key in ('policy_loss', 'value_loss', 'entropy', 'approx_kl', 'clip_fraction'):
            assert np.isfinite(stats[key])
        assert agent.buffer.size == 0
        assert agent.buffer.reward_count == 0
        assert agent.updates == 1
        assert not np.array_equal(before, agent.network.arena)

    def test_update_on_empty_buffer(self):
        agent = PPOAgent(small_config())
        agent.store_reward(1.0)
        assert agent.update_policy() is None
        assert agent.buffer.reward_count == 0
        assert agent.updates == 0

    def test_automatic_update_when_rollout_fills(self):
        agent = PPOAgent(small_config(rollout_size=4))
        rng = np.random.default_rng(6)
        for _ in range(4):
            agent.receive_observation(random_record(rng))
            agent.get_action()
            agent.store_reward(1.0)
        assert agent.updates == 0

        agent.receive_observation(random_record(rng))
        assert agent.updates == 1
        assert agent.buffer.size == 1
        assert agent.buffer.reward_count == 0

    def test_rollout_update_keeps_terminal_flag(self, monkeypatch):
        agent = PPOAgent(small_config(rollout_size=2))
        trained_dones = []
        consume = agent.trainer.consume

        def recording_consume(buffer, estimator, bootstrap_value=0.0):
            trained_dones.append(buffer.batch().dones.tolist())
            return consume(buffer, estimator, bootstrap_value)

        monkeypatch.setattr(agent.trainer, 'consume', recording_consume)

        rng = np.random.default_rng(13)
        for _ in range(2):
            agent.receive_observation(random_record(rng))
            agent.get_action()
            agent.store_reward(0.5)
        assert trained_dones == []

        agent.end_episode(0.0)
        assert trained_dones == [[False, True]]
        assert agent.buffer.size == 0

    def test_no_automatic_update_when_not_training(self):
        agent = PPOAgent(small_config(rollout_size=2))
        agent.training = False
        rng = np.random.default_rng(7)
        for _ in range(4):
            agent.receive_observation(random_record(rng))
            agent.store_reward(1.0)
        assert agent.updates == 0
        assert agent.buffer.size == 4

    def test_update_on_episode_end(self):
        agent = PPOAgent(small_config(update_on_episode_end=True))
        rng = np.random.default_rng(8)
        for _ in range(3):
            agent.receive_observation(random_record(rng))
            agent.store_reward(0.1)
        agent.end_episode(5.0)
        assert agent.updates == 1
        assert agent.buffer.size == 0

    def test_save_and_load_weights(self):
        record = random_record(np.random.default_rng(9))
        a = PPOAgent(small_config(seed=1))
        b = PPOAgent(small_config(seed=2))
        a.receive_observation(record)
        b.receive_observation(record)
        assert not np.allclose(a.last_probs, b.last_probs)

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'weights.json')
            a.save_weights(path)
            b.load_weights(path)

        np.testing.assert_allclose(b.last_probs, a.last_probs, rtol=1e-6)
        assert b.trainer.optimizer.t == 0

    def test_load_mismatch_keeps_weights(self):
        a = PPOAgent(small_config(hidden_sizes=(32,)))
        b = PPOAgent(small_config())
        b.receive_observation(random_record(np.random.default_rng(10)))
        probs = b.last_probs
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'weights.json')
            a.save_weights(path)
            with pytest.raises(ArchitectureMismatchError):
                b.load_weights(path)
            with pytest.raises(WeightFormatError):
                b.load_weights(os.path.join(tmpdir, 'missing.json'))
        np.testing.assert_array_equal(b.last_probs, probs)

    def test_checkpoint_directory(self):
        agent = PPOAgent(small_config())
        rng = np.random.default_rng(11)
        for _ in range(10):
            agent.receive_observation(random_record(rng))
            agent.store_reward(1.0)
        agent.end_episode()
        agent.update_policy()

        with tempfile.TemporaryDirectory() as tmpdir:
            agent.save(tmpdir)
            assert os.path.exists(os.path.join(tmpdir, 'weights.json'))
            assert AgentConfig.load(os.path.join(tmpdir, 'config.json')) == agent.config
            with open(os.path.join(tmpdir, 'training_stats.json')) as f:
                stats = json.load(f)
            assert stats['updates'] == 1

            restored = PPOAgent(small_config(seed=99))
            restored.load(tmpdir)

        np.testing.assert_array_equal(restored.network.arena, agent.network.arena)
        assert restored.total_steps == 10
        assert restored.episodes_completed == 1
        assert restored.updates == 1

    def test_get_stats(self):
        agent = PPOAgent(small_config())
        agent.receive_observation(random_record(np.random.default_rng(12)))
        agent.end_episode(3.0)
        stats = agent.get_stats()
        assert stats['total_steps'] == 1
        assert stats['episodes_completed'] == 1
        assert stats['avg_reward'] == pytest.approx(3.0)

    def test_to_native(self):
        data = to_native({'a': np.float32(1.5), 'b': [np.int64(2)], 'c': np.zeros(2)})
        assert json.dumps(data) == '{"a": 1.5, "b": [2], "c": [0.0, 0.0]}'


class TestTickClock:
    def test_accumulates_until_interval(self):
        times = iter([0.0, 0.02, 0.04, 0.06, 0.08, 0.16])
        clock = TickClock(tick_hz=20.0, clock=lambda: next(times))
        assert clock.advance() is False
        assert clock.advance() is False
        assert clock.advance() is True
        assert clock.advance() is False
        assert clock.advance() is True


class TestTickRunner:
    def test_run_episode(self):
        agent = PPOAgent(small_config())
        runner = TickRunner(agent, CourseEnv(max_ticks=400))
        result = runner.run_episode(max_ticks=15)
        assert 1 <= result['ticks'] <= 15
        assert agent.buffer.size == result['ticks']
        assert agent.buffer.is_terminal
        assert agent.episodes_completed == 1

    def test_train(self):
        agent = PPOAgent(small_config(rollout_size=16))
        runner = TickRunner(agent, CourseEnv(max_ticks=20))
        calls = []
        with tempfile.TemporaryDirectory() as tmpdir:
            save_path = os.path.join(tmpdir, 'ckpt')
            summary = runner.train(3, max_ticks=20, log_interval=1, save_path=save_path,
                                   callback=lambda a, ep, res: calls.append(ep))
            assert os.path.exists(os.path.join(save_path, 'weights.json'))
        assert summary['episodes'] == 3
        assert summary['updates'] >= 1
        assert calls == [1, 2, 3]
        assert agent.buffer.size == 0

    def test_evaluate_does_not_train(self):
        agent = PPOAgent(small_config(rollout_size=4))
        runner = TickRunner(agent, CourseEnv(max_ticks=20))
        before = agent.network.arena.copy()
        results = runner.evaluate(2, max_ticks=20)
        assert results['episodes'] == 2
        assert agent.updates == 0
        assert agent.training
        assert agent.buffer.size == 0
        np.testing.assert_array_equal(agent.network.arena, before)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
