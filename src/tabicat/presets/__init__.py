"""Chat presets: profiles, templates and profile reconciliation."""

from .defaults import DEFAULT_PROFILES, DEFAULT_TEMPLATES
from .models import AUTO_PROFILE_PREFIX, Profile, Template, parse_profiles, parse_templates
from .reconciler import (
    auto_profile_id,
    compute_effective_profiles,
    find_profile,
    is_auto_profile_id,
    new_profile_id,
    new_template_id,
    reconcile_selection,
    unique_model_names,
    validate_user_profile_id,
)

__all__ = [
    "AUTO_PROFILE_PREFIX",
    "DEFAULT_PROFILES",
    "DEFAULT_TEMPLATES",
    "Profile",
    "Template",
    "auto_profile_id",
    "compute_effective_profiles",
    "find_profile",
    "is_auto_profile_id",
    "new_profile_id",
    "new_template_id",
    "parse_profiles",
    "parse_templates",
    "reconcile_selection",
    "unique_model_names",
    "validate_user_profile_id",
]
