"""Prefix convention for target material names."""


def target_material_name(name: str, prefix: str) -> str:
    """Return the on-disk material name a source material should map to.

    Names that already carry the prefix are returned unchanged, so applying
    the convention twice never stacks the prefix.

    Args:
        name: Material name found on the asset.
        prefix: Prefix the target materials use.

    Returns:
        str: Expected target material name.

    Examples:
        >>> target_material_name("Body", "M_")
        'M_Body'
        >>> target_material_name("M_Body", "M_")
        'M_Body'
    """
    if name.startswith(prefix):
        return name
    return prefix + name
