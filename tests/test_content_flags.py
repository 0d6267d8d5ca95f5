"""Tests for the ContentFlags record and its helpers."""
import pytest

from edify.schemas.content_flags import ContentFlags, describe_flags, flag_labels, flag_severity


def test_defaults_are_all_false():
    flags = ContentFlags()
    assert set(flags.model_dump()) == set(ContentFlags.field_names())
    assert len(ContentFlags.field_names()) == 10
    assert not flags.any_flagged()


def test_from_partial_ignores_unknown_keys_and_non_true_values():
    flags = ContentFlags.from_partial({"pii_detected": True, "bias_detected": "yes", "unknown_flag": True})
    assert flags.pii_detected is True
    assert flags.bias_detected is False
    assert flags.flagged_names() == ["pii_detected"]


def test_merge_is_or_and_never_clears_a_true_flag():
    merged = ContentFlags.merge(
        {"bias_detected": True},
        {"bias_detected": False, "pii_detected": True},
        None,
        ContentFlags(self_harm_detected=True),
    )
    assert merged.bias_detected
    assert merged.pii_detected
    assert merged.self_harm_detected
    assert not merged.content_violation


def test_with_fraud_as_automation():
    flags = ContentFlags(fraudulent_intent_detected=True).with_fraud_as_automation()
    assert flags.automation_misuse_detected
    assert flags.fraudulent_intent_detected

    unchanged = ContentFlags(pii_detected=True).with_fraud_as_automation()
    assert not unchanged.automation_misuse_detected


@pytest.mark.parametrize(
    "name,severity",
    [
        ("child_safety_violation", "critical"),
        ("extremist_content_detected", "critical"),
        ("prompt_injection_detected", "high"),
        ("pii_detected", "high"),
        ("bias_detected", "medium"),
        ("misinformation_detected", "medium"),
    ],
)
def test_flag_severity(name, severity):
    assert flag_severity(name) == severity


def test_blocking_names_respects_threshold():
    flags = ContentFlags(misinformation_detected=True, pii_detected=True, child_safety_violation=True)
    assert flags.blocking_names("medium") == ["pii_detected", "misinformation_detected", "child_safety_violation"]
    assert flags.blocking_names("high") == ["pii_detected", "child_safety_violation"]
    assert flags.blocking_names("critical") == ["child_safety_violation"]


def test_labels_and_descriptions_from_stored_json():
    stored = {"pii_detected": True, "extremist_content_detected": True, "bias_detected": False}
    assert flag_labels(stored) == ["PII Detected", "Extremist Content"]

    details = describe_flags(stored)
    assert [(d.type, d.severity) for d in details] == [("PII Detected", "high"), ("Extremist Content", "critical")]
    assert describe_flags(None) == []


def test_flags_are_immutable():
    flags = ContentFlags()
    with pytest.raises(Exception):
        flags.pii_detected = True
