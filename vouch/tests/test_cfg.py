"""
Tests for build predicates and build configuration
"""

import sys

import pytest
from vouch.core.behavior import RuntimeBehavior
from vouch.core.config import BuildConfig
from vouch.core.errors import SpecError
from vouch.grammar.cfg import parse_attribute, parse_settings
from vouch.grammar.lexer import tokenize_annotation


def predicate(text):
    return parse_attribute(tokenize_annotation(text)[0])


def test_flag_predicate():
    """Test a bare name checks a flag"""
    cfg = predicate("#[cfg(debug)]")

    assert cfg.source == "debug"
    assert cfg.evaluate(BuildConfig(flags=frozenset({"debug"})))
    assert not cfg.evaluate(BuildConfig())


def test_nested_predicate():
    """Test all/not combinations"""
    cfg = predicate("#[cfg(all(debug, not(test)))]")

    assert cfg.source == "all(debug, not(test))"
    assert cfg.evaluate(BuildConfig(flags=frozenset({"debug"})))
    assert not cfg.evaluate(BuildConfig(flags=frozenset({"debug", "test"})))


def test_value_predicate():
    """Test key = "value" settings"""
    cfg = predicate('#[cfg(feature = "fast")]')

    assert cfg.evaluate(BuildConfig().with_value("feature", "fast"))
    assert not cfg.evaluate(BuildConfig().with_value("feature", "safe"))
    assert not cfg.evaluate(BuildConfig())


def test_empty_all_and_any():
    """Test all() is true and any() is false"""
    assert predicate("#[cfg(all())]").evaluate(BuildConfig())
    assert not predicate("#[cfg(any())]").evaluate(BuildConfig())


def test_any_predicate():
    """Test any() with one matching flag"""
    cfg = predicate("#[cfg(any(test, debug))]")
    assert cfg.evaluate(BuildConfig(flags=frozenset({"debug"})))


def test_unsupported_attribute():
    """Test only cfg attributes are accepted"""
    with pytest.raises(SpecError) as exc:
        predicate("#[inline]")
    assert exc.value.message == "unsupported attribute; only `cfg` is allowed"


def test_not_takes_one_predicate():
    """Test not(a, b) is rejected"""
    with pytest.raises(SpecError):
        predicate("#[cfg(not(a, b))]")


def test_value_must_be_string():
    """Test key = value needs a string literal"""
    with pytest.raises(SpecError) as exc:
        predicate("#[cfg(feature = fast)]")
    assert "string literal" in exc.value.message


def test_parse_settings():
    """Test comma-separated settings"""
    flags, values = parse_settings('debug, feature = "fast", feature = "safe"')

    assert flags == {"debug"}
    assert values == {"feature": frozenset({"fast", "safe"})}


def test_parse_settings_rejects_combinators():
    """Test settings are plain names or pairs"""
    with pytest.raises(SpecError):
        parse_settings("all(a)")


def test_config_defaults():
    """Test default flags and values"""
    config = BuildConfig.defaults()

    assert config.is_set("debug") == __debug__
    assert config.has_value("platform", sys.platform)
    assert config.behavior == RuntimeBehavior.ABORT


def test_config_from_env():
    """Test reading the environment"""
    config = BuildConfig.from_env({
        "VOUCH_BEHAVIOR": "report",
        "VOUCH_CFG": 'test, level = "2"'
    })

    assert config.behavior == RuntimeBehavior.REPORT
    assert config.is_set("test")
    assert config.has_value("level", "2")
    assert config.has_value("platform", sys.platform)


def test_config_from_env_bad_behavior():
    """Test unknown behaviors are rejected"""
    with pytest.raises(ValueError) as exc:
        BuildConfig.from_env({"VOUCH_BEHAVIOR": "loud"})
    assert "abort, report, none" in str(exc.value)


def test_config_helpers_are_immutable():
    """Test with_* helpers return new configurations"""
    base = BuildConfig()
    changed = base.with_flags("a").with_behavior("none")

    assert not base.is_set("a")
    assert changed.is_set("a")
    assert changed.without_flags("a").flags == frozenset()
    assert changed.behavior == RuntimeBehavior.NO_CHECK
    assert changed.to_dict() == {"flags": ["a"], "values": {}, "behavior": "none"}


def test_config_with_settings():
    """Test settings text extends an existing configuration"""
    base = BuildConfig(values={"feature": frozenset({"slow"})})
    config = base.with_settings('audit, feature = "fast"')

    assert config.is_set("audit")
    assert config.has_value("feature", "slow")
    assert config.has_value("feature", "fast")
    assert not base.is_set("audit")

    with pytest.raises(SpecError):
        base.with_settings("any(audit)")
