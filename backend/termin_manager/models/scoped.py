import uuid

from sqlalchemy import ForeignKey, Uuid
from sqlalchemy.orm import Mapped, declared_attr, mapped_column


class TeamScoped:
    """
    Mixin for rows owned by a team.

    Every ORM statement touching a subclass is filtered by the team bound to
    the session (see termin_manager.tenant_context).
    """

    @declared_attr
    def team_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
