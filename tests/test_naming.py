"""Tests for the target material prefix convention."""

import pytest

from material_remapper.core.naming import target_material_name


@pytest.mark.parametrize(
    ("name", "prefix", "expected"),
    [
        ("Body", "M_", "M_Body"),
        ("M_Body", "M_", "M_Body"),
        ("m_Body", "M_", "M_m_Body"),
        ("Body", "", "Body"),
        ("Mat_Body", "Mat_", "Mat_Body"),
    ],
)
def test_target_material_name(name, prefix, expected):
    """Prefix is added once and matching is case-sensitive."""
    assert target_material_name(name, prefix) == expected


def test_target_material_name_is_idempotent():
    """Applying the convention twice gives the same name."""
    once = target_material_name("Eyes", "M_")
    assert target_material_name(once, "M_") == once
