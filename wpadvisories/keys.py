"""Composer package identifiers for WordPress software."""

from .models import SoftwareType

WPACKAGIST_VENDOR = "wpackagist"
WORDPRESS_CORE_SLUG = "wordpress"
WORDPRESS_CORE_PACKAGE = "roots/wordpress"


def resolve_vulnerability_key(software_type: SoftwareType | str, slug: str) -> str | None:
    """Map a software type and slug to the package name used in composer.json.

    Plugins and themes resolve to their WPackagist mirrors; WordPress core
    resolves to the roots/wordpress package.

    Args:
        software_type: Feed software type, as enum member or raw string
        slug: WordPress.org slug of the software

    Returns:
        Lower-cased package identifier, or None when the software has no composer package
    """
    software_type = SoftwareType.parse(software_type)
    slug = (slug or "").lower()

    if software_type in (SoftwareType.PLUGIN, SoftwareType.THEME):
        return f"{WPACKAGIST_VENDOR}-{software_type.value}/{slug}"
    if software_type is SoftwareType.CORE and slug == WORDPRESS_CORE_SLUG:
        return WORDPRESS_CORE_PACKAGE
    return None
