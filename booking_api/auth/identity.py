from dataclasses import dataclass

from booking_api.models.user import Role


@dataclass(frozen=True)
class CallerIdentity:
    """The verified caller of a request, as established by the access gate."""

    user_id: int
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
