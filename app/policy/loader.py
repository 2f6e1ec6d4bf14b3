"""YAML policy template loader with integrity hash."""

import hashlib
from pathlib import Path
from typing import Any

import yaml

from app.policy.errors import MalformedPolicyError
from app.policy.models import CancellationPolicy
from app.schemas.policy import parse_policy

# Bundled policy templates
TEMPLATES_DIR = Path(__file__).parent / "templates"

DEFAULT_TEMPLATE = "standard-cancellation-v1.yaml"


def compute_template_hash(content: str) -> str:
    """Compute SHA256 hash of template content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def load_policy_template(
    filename: str = DEFAULT_TEMPLATE,
    templates_dir: Path | None = None,
) -> tuple[dict[str, Any], str]:
    """Load a policy template YAML file and compute its hash.

    Args:
        filename: Name of the template file
        templates_dir: Directory containing templates (defaults to bundled)

    Returns:
        Tuple of (parsed template dict, SHA256 hash)

    Raises:
        FileNotFoundError: If template file doesn't exist
        MalformedPolicyError: If the YAML is not a mapping
    """
    if templates_dir is None:
        templates_dir = TEMPLATES_DIR

    filepath = templates_dir / filename

    if not filepath.exists():
        raise FileNotFoundError(f"Policy template not found: {filepath}")

    content = filepath.read_text(encoding="utf-8")
    template = yaml.safe_load(content)

    if not isinstance(template, dict):
        raise MalformedPolicyError(f"Policy template {filename} is not a mapping")

    return template, compute_template_hash(content)


class PolicyTemplateLoader:
    """Stateful template loader with caching."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir or TEMPLATES_DIR
        self._cache: dict[str, tuple[CancellationPolicy, str]] = {}

    def load(self, filename: str = DEFAULT_TEMPLATE, use_cache: bool = True) -> tuple[CancellationPolicy, str]:
        """Load and validate a template.

        Returns:
            Tuple of (policy snapshot, file hash)
        """
        if use_cache and filename in self._cache:
            return self._cache[filename]

        template, template_hash = load_policy_template(filename, self.templates_dir)
        policy = parse_policy(template)
        self._cache[filename] = (policy, template_hash)

        return policy, template_hash

    def list_templates(self) -> list[str]:
        """List available template files."""
        return sorted(f.name for f in self.templates_dir.glob("*.yaml"))

    def clear_cache(self) -> None:
        self._cache.clear()


_default_loader = PolicyTemplateLoader()


def default_policy() -> CancellationPolicy:
    """Standard policy template as a validated snapshot."""
    policy, _ = _default_loader.load(DEFAULT_TEMPLATE)
    return policy
