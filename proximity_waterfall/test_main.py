#!/usr/bin/env python3
"""
Tests for command line parsing and configuration overrides.
"""

import pytest
import yaml

from proximity_waterfall.config import Configuration
from proximity_waterfall.main import apply_command_line_overrides, main, parse_arguments


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        'scan': {'num_bins': 64, 'peak_bins': [8], 'reradiation_bins': [8],
                 'scan_rate_hz': 200, 'seed': 3},
        'waterfall': {'width': 8, 'height': 4},
    }))
    return str(path)


def test_defaults():
    args = parse_arguments([])

    assert args.config == 'config.yaml'
    assert args.mode is None
    assert args.range_mode is None
    assert not args.gui
    assert not args.no_color


def test_overrides_applied(config_path):
    args = parse_arguments([
        '-c', config_path, '--mode', 'difference', '--range', 'fixed',
        '--min', '-80', '--max', '-20', '--delta', '150',
        '-n', '12', '-o', 'out.png', '-v', '--no-color',
    ])
    config = Configuration(args.config)

    apply_command_line_overrides(config, args)

    assert config.waterfall.mode == 'difference'
    assert config.waterfall.range_mode == 'fixed'
    assert config.waterfall.strength_min == -80
    assert config.waterfall.strength_max == -20
    assert config.waterfall.delta_range == 150
    assert config.session.max_scans == 12
    assert config.session.snapshot_file == 'out.png'
    assert config.display.verbose
    assert not config.display.use_colors


def test_invalid_override_rejected(config_path):
    args = parse_arguments(['-c', config_path, '--min', '0', '--max', '-10'])
    config = Configuration(args.config)

    with pytest.raises(ValueError):
        apply_command_line_overrides(config, args)


def test_unknown_mode_rejected():
    with pytest.raises(SystemExit):
        parse_arguments(['--mode', 'spectrum'])


def test_missing_config_file(tmp_path, capsys):
    assert main(['-c', str(tmp_path / "missing.yaml")]) == 1
    assert "Configuration file not found" in capsys.readouterr().out


def test_bad_config_value(config_path, capsys):
    assert main(['-c', config_path, '--delta', '-1']) == 1
    assert "Error loading configuration" in capsys.readouterr().out


def test_console_run_with_snapshot(config_path, tmp_path, qapp, monkeypatch):
    # Keyboard hooks need a real input device
    monkeypatch.setattr('proximity_waterfall.main.run_console',
                        lambda session: session.run(enable_keyboard=False))
    snapshot = tmp_path / "waterfall.png"

    assert main(['-c', config_path, '-n', '4', '-o', str(snapshot), '--no-color']) == 0
    assert snapshot.exists()
