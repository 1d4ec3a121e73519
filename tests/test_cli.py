"""
Tests for the command line interface.
"""

import sys
import os
import json
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
import cli
from core.config import AgentConfig


def write_config(tmpdir, **overrides):
    params = dict(hidden_sizes=(16, 8), rollout_size=32, minibatch_size=16)
    params.update(overrides)
    path = os.path.join(tmpdir, 'agent.json')
    AgentConfig(**params).save(path)
    return path


class TestCLI:
    def test_no_command(self, capsys):
        assert cli.main([]) == 0
        assert 'train' in capsys.readouterr().out

    def test_train_evaluate_inspect(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = write_config(tmpdir)
            ckpt = os.path.join(tmpdir, 'ckpt')

            code = cli.main(['train', '--episodes', '2', '--max-ticks', '15',
                             '--config', config_path, '--save', ckpt])
            assert code == 0
            assert os.path.exists(os.path.join(ckpt, 'weights.json'))

            code = cli.main(['evaluate', '--weights', ckpt, '--config', config_path,
                             '--episodes', '1', '--max-ticks', '10'])
            assert code == 0

            capsys.readouterr()
            code = cli.main(['inspect', os.path.join(ckpt, 'weights.json')])
            assert code == 0
            meta = json.loads(capsys.readouterr().out)
            assert meta['hidden_sizes'] == [16, 8]
            assert meta['action_count'] == 7

    def test_evaluate_render(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = write_config(tmpdir)
            weights = os.path.join(tmpdir, 'weights.json')
            from platformer_ai.agent import PPOAgent
            PPOAgent(AgentConfig.load(config_path)).save_weights(weights)

            code = cli.main(['evaluate', '--weights', weights, '--config', config_path,
                             '--episodes', '1', '--max-ticks', '5', '--render'])
            assert code == 0
            assert 'Episode 1' in capsys.readouterr().out

    def test_inspect_missing_file(self, capsys):
        code = cli.main(['inspect', '/nonexistent/weights.json'])
        assert code == 1
        assert 'Error' in capsys.readouterr().out

    def test_evaluate_architecture_mismatch(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = write_config(tmpdir)
            weights = os.path.join(tmpdir, 'weights.json')
            from platformer_ai.agent import PPOAgent
            PPOAgent(AgentConfig(hidden_sizes=(8,))).save_weights(weights)

            code = cli.main(['evaluate', '--weights', weights, '--config', config_path])
            assert code == 1
            assert 'hidden layers' in capsys.readouterr().out


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
