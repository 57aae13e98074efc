# tests/test_wire_config.py
from pathlib import Path

import pytest

import wiring_fixtures as wf
from vent.wire_config import build_from_dict, build_from_yaml

PIPELINE_YAML = """
dispatcher:
  name: wired
  base_type: wiring_fixtures:BaseEvent
processors:
  - tier: before_any
    processor: wiring_fixtures:audit
  - event: wiring_fixtures:Ping
    processor: wiring_fixtures:on_ping
  - tier: normal
    event: wiring_fixtures:Ping
    processor: wiring_fixtures:on_ping_late
  - tier: after
    event: wiring_fixtures:Ping
    processor: wiring_fixtures:Handlers.after_ping
"""


@pytest.fixture(autouse=True)
def _clear_seen():
    wf.SEEN.clear()
    yield
    wf.SEEN.clear()


def test_build_from_yaml_wires_all_tiers(tmp_path: Path):
    cfg = tmp_path / "dispatcher.yaml"
    cfg.write_text(PIPELINE_YAML, encoding="utf-8")

    d, regs = build_from_yaml(cfg)

    assert d.name == "wired"
    assert d.base_type is wf.BaseEvent
    assert [r.tier for r in regs] == ["before_any", "normal", "normal", "after"]
    assert regs[0].event_type is None
    assert regs[1].event_type is wf.Ping

    d.post(wf.Ping(1))
    d.post(wf.Pong(2))
    d.process()

    # on_ping consumes, so on_ping_late never runs
    assert wf.SEEN == [("audit", "Ping"), ("normal", 1), ("after", 1), ("audit", "Pong")]


def test_base_type_from_config_is_enforced():
    d, _ = build_from_dict({"dispatcher": {"base_type": "wiring_fixtures:BaseEvent"}})
    with pytest.raises(TypeError):
        d.post(wf.Plain())


def test_empty_config_gives_default_dispatcher(tmp_path: Path):
    cfg = tmp_path / "empty.yaml"
    cfg.write_text("", encoding="utf-8")
    d, regs = build_from_yaml(cfg)
    assert regs == []
    assert d.name == "vent"
    assert d.cfg.isolate_errors is False


def test_flags_are_passed_through():
    d, _ = build_from_dict({"dispatcher": {"isolate_errors": 1, "threadsafe": True}})
    assert d.cfg.isolate_errors is True
    assert d.cfg.threadsafe is True


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"dispatcher": {"colour": "red"}},
        {"processors": [{"tier": "sideways", "processor": "wiring_fixtures:audit"}]},
        {"processors": [{"tier": "before", "processor": "wiring_fixtures:audit"}]},
        {"processors": [{"event": "wiring_fixtures:Ping"}]},
        {"processors": [{"event": "wiring_fixtures:Ping", "processor": "wiring_fixtures.on_ping"}]},
        {"processors": [{"event": "wiring_fixtures:Ping", "processor": "wiring_fixtures:missing"}]},
        {"processors": ["wiring_fixtures:audit"]},
    ],
)
def test_malformed_config_raises_value_error(data):
    with pytest.raises(ValueError):
        build_from_dict(data)
