import json

import pytest

from run import main


@pytest.mark.slow
class TestDemoCli:

    def test_report(self, capsys, tmp_path):
        model_path = tmp_path / 'models.json'
        code = main([
            '--packets', '30',
            '--seed', '4',
            '--trees', '3',
            '--samples', '20',
            '--save-models', str(model_path),
            '--log-level', 'WARNING',
        ])
        assert code == 0

        report = json.loads(capsys.readouterr().out)
        threat_types = report['statistics']['by_threat_type']
        for expected in ('sql_injection', 'xss', 'dos', 'port_scan', 'brute_force'):
            assert expected in threat_types
        assert report['service']['models']['random_forest']['trees'] == 3
        assert set(report['window_verdict']) >= {'is_attack', 'confidence', 'probability'}

        saved = json.loads(model_path.read_text())
        assert saved['format_version'] == 1
