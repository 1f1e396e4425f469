"""
Tests for the @spec decorator and the active configuration
"""

import pytest
from vouch import (
    BuildConfig,
    ContractViolation,
    RuntimeBehavior,
    SpecError,
    active_config,
    configure,
    parse_spec,
    spec,
    specification_of,
)


@pytest.fixture
def restore_config():
    previous = configure(None)
    yield
    configure(previous)


def test_annotation_errors_raise_at_decoration():
    """Test malformed annotations fail before any function is wrapped"""
    with pytest.raises(SpecError) as exc:
        spec("requires x > 0")
    assert exc.value.annotation == "requires x > 0"
    assert "line 1, column 10" in exc.value.format()


def test_annotation_must_be_text():
    """Test @spec without arguments is a usage error"""
    with pytest.raises(TypeError):
        @spec
        def f():
            pass


def test_specification_of():
    """Test reading back the attached specification"""
    @spec("requires: x > 0", config=BuildConfig())
    def f(x):
        return x

    def g(x):
        return x

    assert specification_of(f) == parse_spec("requires: x > 0")
    assert specification_of(g) is None


def test_uses_active_config(restore_config, capsys):
    """Test decorators without config follow configure()"""
    configure(BuildConfig().with_behavior("report"))

    @spec("requires: x > 0")
    def f(x):
        return x

    assert f(-1) == -1
    assert "Precondition failed: x > 0" in capsys.readouterr().err


def test_configure_affects_later_decorations_only(restore_config):
    """Test behavior is fixed when the decorator runs"""
    configure(BuildConfig())

    @spec("requires: x > 0")
    def strict(x):
        return x

    configure(BuildConfig().with_behavior("none"))

    @spec("requires: x > 0")
    def relaxed(x):
        return x

    assert relaxed(-1) == -1
    with pytest.raises(ContractViolation):
        strict(-1)


def test_active_config_reads_environment(restore_config, monkeypatch):
    """Test the environment is read on first use"""
    monkeypatch.setenv("VOUCH_BEHAVIOR", "none")
    monkeypatch.setenv("VOUCH_CFG", "slow")

    config = active_config()

    assert config.behavior == RuntimeBehavior.NO_CHECK
    assert config.is_set("slow")
    assert active_config() is config


def test_contract_violation_is_assertion_error():
    """Test violations can be caught as AssertionError"""
    @spec("ensures: output", config=BuildConfig())
    def falsy():
        return 0

    with pytest.raises(AssertionError) as exc:
        falsy()
    assert exc.value.function.endswith("falsy")
