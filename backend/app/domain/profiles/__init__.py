"""Read-only profile projections supplied by the user-management collaborator."""

from app.domain.profiles.models import Location, ProfileProjection, UserRole, Weekday

__all__ = ["Location", "ProfileProjection", "UserRole", "Weekday"]
