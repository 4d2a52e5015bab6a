"""Users domain: donors, seekers and admins."""
