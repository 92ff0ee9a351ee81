# Profile Images package
# Trusted remote profile-image fetching: URL validation, allowlisted URL
# templates, streaming download into the caller's upload slot, profile update.

__version__ = "1.0.0"
