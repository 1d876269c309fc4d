from drillguard.db import get_session
from drillguard.models import AuditLogModel, User


def log_event(
    action: str,
    user: User | None = None,
    module: str = "Auth",
    status: str = "success",
    description: str | None = None,
    ip: str | None = None,
    failure_reason: str | None = None,
) -> None:
    row = AuditLogModel(
        user_id=user.id if user else None,
        user_name=user.name if user else None,
        user_role=user.role if user else None,
        action=action,
        module=module,
        status=status,
        description=description,
        ip_address=ip,
        failure_reason=failure_reason,
    )
    with get_session() as session:
        session.add(row)
