"""
Tick Runner - Drives a PPOAgent against a host environment at a fixed cadence.

Per tick: observation -> receive_observation -> get_action -> env.step ->
store_reward (or end_episode with the terminal reward). In realtime mode an
accumulator clock holds the loop at tick_hz; otherwise ticks run back to back.
Training happens inside the agent whenever its rollout fills up.
"""

from typing import Callable, Dict, Optional
import logging
import time

import numpy as np

from platformer_ai.agent import PPOAgent

logger = logging.getLogger(__name__)


class TickClock:
    """Accumulates elapsed time and reports when a tick is due."""

    def __init__(self, tick_hz: float = 20.0, clock: Callable[[], float] = time.monotonic):
        self.interval = 1.0 / tick_hz
        self._clock = clock
        self._last = clock()
        self._accumulated = 0.0

    def advance(self) -> bool:
        now = self._clock()
        self._accumulated += now - self._last
        self._last = now
        if self._accumulated >= self.interval:
            self._accumulated = 0.0
            return True
        return False

    def wait(self):
        """Block until the next tick is due."""
        while not self.advance():
            time.sleep(max(0.0, self.interval - self._accumulated))


class TickRunner:
    """
    Runs episodes of env with agent.

    env must provide reset() -> record and
    step(actions) -> (record, reward, done, info).
    """

    def __init__(self, agent: PPOAgent, env, tick_hz: Optional[float] = None,
                 realtime: bool = False):
        self.agent = agent
        self.env = env
        self.realtime = realtime
        self.clock = TickClock(tick_hz or agent.config.tick_hz) if realtime else None

    def run_episode(self, max_ticks: Optional[int] = None,
                    deterministic: bool = False) -> Dict:
        """Play one episode; experience flows into the agent's buffer."""
        record = self.env.reset()
        total_reward = 0.0
        ticks = 0
        info = {}

        while True:
            if self.clock is not None:
                self.clock.wait()

            self.agent.receive_observation(record)
            actions = self.agent.get_action(deterministic=deterministic)
            record, reward, done, info = self.env.step(actions)
            total_reward += reward
            ticks += 1

            if not done and max_ticks is not None and ticks >= max_ticks:
                done = True
                info = dict(info, truncated=True)

            if done:
                self.agent.end_episode(reward)
                break
            self.agent.store_reward(reward)

        return {
            'reward': total_reward,
            'ticks': ticks,
            'reached_goal': bool(info.get('reached_goal', False)),
            'died': bool(info.get('died', False)),
            'truncated': bool(info.get('truncated', False)),
        }

    def train(self, episodes: int, max_ticks: Optional[int] = None,
              log_interval: int = 10, save_path: Optional[str] = None,
              callback=None) -> Dict:
        """
        Main training loop.

        Args:
            episodes: Number of episodes to play
            max_ticks: Optional per-episode tick cap
            log_interval: Log stats every N episodes
            save_path: Checkpoint directory, saved every 10 * log_interval episodes and at the end
            callback: Optional callback function(agent, episode_num, result)
        """
        results = []
        for episode in range(1, episodes + 1):
            result = self.run_episode(max_ticks=max_ticks)
            results.append(result)

            if log_interval and episode % log_interval == 0:
                recent = results[-log_interval:]
                logger.info(f"Episode {episode}/{episodes} | "
                            f"Steps: {self.agent.total_steps} | "
                            f"Updates: {self.agent.updates} | "
                            f"Avg Reward: {np.mean([r['reward'] for r in recent]):.2f} | "
                            f"Goal Rate: {np.mean([r['reached_goal'] for r in recent]):.1%}")

            if save_path and log_interval and episode % (log_interval * 10) == 0:
                self.agent.save(save_path)

            if callback:
                callback(self.agent, episode, result)

        # Flush whatever is left in the buffer
        self.agent.update_policy()

        if save_path:
            self.agent.save(save_path)

        recent = results[-100:]
        return {
            'episodes': episodes,
            'total_steps': self.agent.total_steps,
            'updates': self.agent.updates,
            'final_avg_reward': float(np.mean([r['reward'] for r in recent])) if recent else 0.0,
            'goal_rate': float(np.mean([r['reached_goal'] for r in recent])) if recent else 0.0,
        }

    def evaluate(self, episodes: int, max_ticks: Optional[int] = None) -> Dict:
        """Deterministic episodes; the buffered experience is discarded afterwards."""
        was_training = self.agent.training
        self.agent.training = False
        try:
            results = [self.run_episode(max_ticks=max_ticks, deterministic=True)
                       for _ in range(episodes)]
        finally:
            self.agent.training = was_training
            self.agent.buffer.clear()
        return {
            'episodes': episodes,
            'avg_reward': float(np.mean([r['reward'] for r in results])) if results else 0.0,
            'goal_rate': float(np.mean([r['reached_goal'] for r in results])) if results else 0.0,
            'avg_ticks': float(np.mean([r['ticks'] for r in results])) if results else 0.0,
        }
