"""Reconciliation of user-declared profiles with live server models.

The effective profile set is the auto-derived profiles (one per model the
server reports, in first-seen order) followed by the user-declared profiles
in stored order. Auto-derived ids live in a reserved namespace so they never
collide with persisted ids.
"""

from collections.abc import Iterable, Sequence
from uuid import uuid4

from ..errors import ValidationError
from .models import AUTO_PROFILE_PREFIX, Profile


def auto_profile_id(model: str) -> str:
    """Derive the id of the auto profile for a model name."""
    return f"{AUTO_PROFILE_PREFIX}{model}"


def is_auto_profile_id(profile_id: str | None) -> bool:
    return bool(profile_id) and profile_id.startswith(AUTO_PROFILE_PREFIX)


def new_profile_id() -> str:
    return f"profile-{uuid4().hex}"


def new_template_id() -> str:
    return f"template-{uuid4().hex}"


def validate_user_profile_id(profile_id: str, existing: Iterable[Profile] = ()) -> None:
    """Reject ids that are empty, reserved, or already taken.

    Raises:
        ValidationError: If the id cannot be used for a user-declared profile
    """
    if not profile_id:
        raise ValidationError("Profile id must not be empty")
    if is_auto_profile_id(profile_id):
        raise ValidationError(
            f"Profile id '{profile_id}' uses the reserved prefix '{AUTO_PROFILE_PREFIX}'"
        )
    if any(profile.id == profile_id for profile in existing):
        raise ValidationError(f"Profile id '{profile_id}' already exists")


def unique_model_names(models: Iterable[str]) -> list[str]:
    """Trim model names, dropping blanks and duplicates (first seen wins)."""
    names: list[str] = []
    seen: set[str] = set()
    for raw in models:
        if not isinstance(raw, str):
            continue
        name = raw.strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def compute_effective_profiles(
    models: Iterable[str],
    user_profiles: Sequence[Profile],
) -> list[Profile]:
    """Build the ordered list of selectable profiles.

    Args:
        models: Model names last reported by the server
        user_profiles: Persisted user-declared profiles, in stored order

    Returns:
        Auto-derived profiles followed by the user-declared ones
    """
    auto = [
        Profile(id=auto_profile_id(name), label=name, model=name)
        for name in unique_model_names(models)
    ]
    return auto + list(user_profiles)


def reconcile_selection(
    effective: Sequence[Profile],
    previous_id: str | None,
) -> tuple[str | None, bool]:
    """Resolve the selected profile against the effective set.

    A previous id that is no longer in the set (a vanished model or a
    deleted user profile) is treated as absent and the first profile is
    selected instead.

    Returns:
        Tuple of (selected id or None, whether it differs from previous_id)
    """
    if previous_id is not None and any(profile.id == previous_id for profile in effective):
        return previous_id, False

    selected = effective[0].id if effective else None
    return selected, selected != previous_id


def find_profile(profiles: Iterable[Profile], profile_id: str | None) -> Profile | None:
    if profile_id is None:
        return None
    return next((profile for profile in profiles if profile.id == profile_id), None)
