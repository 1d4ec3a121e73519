#!/usr/bin/env python3
"""
Platformer PPO - Command Line Interface

Train, evaluate and inspect agents on the built-in course.

Usage:
    python cli.py train --episodes 200 --save checkpoints/
    python cli.py train --config agent.json --load checkpoints/weights.json
    python cli.py evaluate --weights checkpoints/weights.json --episodes 5 --render
    python cli.py inspect checkpoints/weights.json
"""

import argparse
import json
import logging
import os
import sys

from core.config import AgentConfig
from core.errors import WeightStoreError
from core.weights import WeightStore
from game.course import CourseEnv
from platformer_ai.agent import PPOAgent
from platformer_ai.runner import TickRunner


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='platformer-ppo',
        description='Online PPO agent for a real-time platformer'
    )
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose output')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Train command
    train_parser = subparsers.add_parser('train', help='Train on the built-in course')
    train_parser.add_argument('--episodes', '-e', type=int, default=200,
                              help='Number of episodes to play')
    train_parser.add_argument('--max-ticks', type=int, default=400,
                              help='Tick cap per episode')
    train_parser.add_argument('--config', '-c', type=str, default=None,
                              help='Agent config (JSON); PPO_* env vars apply otherwise')
    train_parser.add_argument('--seed', type=int, default=None,
                              help='Override the config seed')
    train_parser.add_argument('--load', type=str, default=None,
                              help='Weights file to start from')
    train_parser.add_argument('--save', '-s', type=str, default=None,
                              help='Checkpoint directory')
    train_parser.add_argument('--log-interval', type=int, default=10,
                              help='Log stats every N episodes')
    train_parser.add_argument('--realtime', action='store_true',
                              help='Hold the loop at the configured tick rate')

    # Evaluate command
    eval_parser = subparsers.add_parser('evaluate', help='Run deterministic episodes')
    eval_parser.add_argument('--weights', '-w', type=str, required=True,
                             help='Weights file or checkpoint directory')
    eval_parser.add_argument('--config', '-c', type=str, default=None,
                             help='Agent config (JSON)')
    eval_parser.add_argument('--episodes', '-e', type=int, default=5,
                             help='Number of episodes')
    eval_parser.add_argument('--max-ticks', type=int, default=400,
                             help='Tick cap per episode')
    eval_parser.add_argument('--render', action='store_true',
                             help='Print the final frame of each episode')

    # Inspect command
    inspect_parser = subparsers.add_parser('inspect', help='Describe a weights file')
    inspect_parser.add_argument('path', type=str, help='Weights file')

    return parser


def configure_logging(verbose: bool):
    logging.basicConfig(
        stream=sys.stdout,
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-5s | %(name)s | %(message)s",
    )


def load_config(path: str = None) -> AgentConfig:
    if path:
        return AgentConfig.load(path)
    return AgentConfig.from_env()


def resolve_weights(path: str) -> str:
    """Accept either a weights file or a checkpoint directory."""
    if os.path.isdir(path):
        return os.path.join(path, 'weights.json')
    return path


def cmd_train(args) -> int:
    """Train an agent on the course"""
    config = load_config(args.config)
    if args.seed is not None:
        config.seed = args.seed

    agent = PPOAgent(config)
    if args.load:
        try:
            agent.load_weights(resolve_weights(args.load))
        except WeightStoreError as e:
            print(f"Error loading weights: {e}")
            return 1

    env = CourseEnv(max_ticks=args.max_ticks)
    runner = TickRunner(agent, env, realtime=args.realtime)

    print("=" * 60)
    print("PLATFORMER PPO - Training")
    print("=" * 60)
    print(f"Episodes: {args.episodes}, hidden: {list(config.hidden_sizes)}, "
          f"rollout: {config.rollout_size}, lr: {config.learning_rate}")

    results = runner.train(args.episodes, max_ticks=args.max_ticks,
                           log_interval=args.log_interval, save_path=args.save)

    print("-" * 60)
    print(json.dumps(results, indent=2))
    if args.save:
        print(f"Checkpoint saved to {args.save}")
    return 0


def cmd_evaluate(args) -> int:
    """Run deterministic episodes with saved weights"""
    config = load_config(args.config)
    agent = PPOAgent(config)
    try:
        agent.load_weights(resolve_weights(args.weights))
    except WeightStoreError as e:
        print(f"Error loading weights: {e}")
        return 1

    env = CourseEnv(max_ticks=args.max_ticks)
    runner = TickRunner(agent, env)

    if args.render:
        agent.training = False
        for episode in range(args.episodes):
            result = runner.run_episode(max_ticks=args.max_ticks, deterministic=True)
            print(f"\nEpisode {episode + 1}: {result}")
            print(env.render())
        agent.buffer.clear()
        return 0

    print(json.dumps(runner.evaluate(args.episodes, max_ticks=args.max_ticks), indent=2))
    return 0


def cmd_inspect(args) -> int:
    """Print a weights file's architecture"""
    try:
        meta = WeightStore().read_metadata(args.path)
    except WeightStoreError as e:
        print(f"Error: {e}")
        return 1
    print(json.dumps(meta, indent=2))
    return 0


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(args.verbose)

    # Map commands to functions
    commands = {
        'train': cmd_train,
        'evaluate': cmd_evaluate,
        'inspect': cmd_inspect,
    }

    if args.command in commands:
        return commands[args.command](args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main() or 0)
