"""Tests for the policy template loader."""

from pathlib import Path

import pytest

from app.policy.errors import MalformedPolicyError
from app.policy.loader import (
    DEFAULT_TEMPLATE,
    PolicyTemplateLoader,
    compute_template_hash,
    default_policy,
    load_policy_template,
)
from app.policy.models import PenaltyKind


class TestComputeHash:
    """Tests for hash computation."""

    def test_same_content_same_hash(self):
        content = "rules: []"
        assert compute_template_hash(content) == compute_template_hash(content)

    def test_different_content_different_hash(self):
        assert compute_template_hash("rules: []") != compute_template_hash("rules: [1]")

    def test_hash_is_sha256(self):
        assert len(compute_template_hash("test")) == 64


class TestLoadPolicyTemplate:
    """Tests for loading the bundled template."""

    def test_load_standard_template(self):
        template, template_hash = load_policy_template(DEFAULT_TEMPLATE)

        assert template["is_default"] is True
        assert len(template["rules"]) == 3
        assert len(template_hash) == 64

    def test_missing_template_raises(self):
        with pytest.raises(FileNotFoundError):
            load_policy_template("nonexistent.yaml")

    def test_non_mapping_template_rejected(self, tmp_path: Path):
        (tmp_path / "list.yaml").write_text("- 1\n- 2\n")

        with pytest.raises(MalformedPolicyError):
            load_policy_template("list.yaml", templates_dir=tmp_path)


class TestPolicyTemplateLoader:
    """Tests for the caching loader."""

    def test_load_validates_into_snapshot(self):
        loader = PolicyTemplateLoader()
        policy, template_hash = loader.load()

        assert policy.thresholds == [12, 24, 48]
        assert policy.free_cancellation_window.hours == 48
        assert policy.no_show.penalty_kind == PenaltyKind.FULL_CHARGE
        assert policy.find_exception("provider_cancellation") is not None
        assert len(template_hash) == 64

    def test_cache_returns_same_snapshot(self):
        loader = PolicyTemplateLoader()

        first, _ = loader.load()
        second, _ = loader.load()

        assert first is second

    def test_clear_cache_reloads(self):
        loader = PolicyTemplateLoader()
        first, _ = loader.load()

        loader.clear_cache()
        second, _ = loader.load()

        assert first is not second
        assert first == second

    def test_list_templates(self):
        assert DEFAULT_TEMPLATE in PolicyTemplateLoader().list_templates()

    def test_invalid_template_raises_malformed(self, tmp_path: Path):
        (tmp_path / "bad.yaml").write_text(
            "late_cancellation:\n  penalty_kind: full_charge\n"
        )

        with pytest.raises(MalformedPolicyError):
            PolicyTemplateLoader(templates_dir=tmp_path).load("bad.yaml")


def test_default_policy_is_default():
    policy = default_policy()

    assert policy.is_default is True
    assert policy.reschedule.max_reschedules == 2
