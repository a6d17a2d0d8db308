from typing import Final

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from ..application.employee_service import (
    EmployeeData,
    create_employee,
    delete_employee,
    get_employee,
    list_employees,
    update_employee,
)
from ..domain.permissions import Permission
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from .dependencies import require_admin_user, require_permission, require_user
from .schemas import (
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
    MessageResponse,
    UserSummary,
)

employees_router: Final = APIRouter(prefix="/employees", tags=["employees"])
users_router: Final = APIRouter(prefix="/users", tags=["employees"])

manage_users: Final = require_permission(Permission.MANAGE_USERS)


@employees_router.get("", response_model=list[EmployeeResponse])
def api_list_employees(
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
) -> list[EmployeeResponse]:
    return [EmployeeResponse.from_user(user) for user in list_employees(session)]


@employees_router.get("/{employee_id}", response_model=EmployeeResponse)
def api_get_employee(
    employee_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(require_admin_user),
) -> EmployeeResponse:
    return EmployeeResponse.from_user(get_employee(session, user, employee_id))


@employees_router.post(
    "", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED
)
def api_create_employee(
    body: EmployeeCreate,
    session: Session = Depends(get_session),
    user: User = Depends(manage_users),
) -> EmployeeResponse:
    """Create an employee; omitted permissions default to the role's set."""
    employee = create_employee(
        session,
        user,
        EmployeeData(**body.model_dump()),
    )
    return EmployeeResponse.from_user(employee)


@employees_router.put("/{employee_id}", response_model=EmployeeResponse)
def api_update_employee(
    employee_id: str,
    body: EmployeeUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(manage_users),
) -> EmployeeResponse:
    employee = update_employee(
        session, user, employee_id, EmployeeData(**body.model_dump())
    )
    return EmployeeResponse.from_user(employee)


@employees_router.delete("/{employee_id}", response_model=MessageResponse)
def api_delete_employee(
    employee_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(manage_users),
) -> MessageResponse:
    delete_employee(session, user, employee_id)
    return MessageResponse(message="Employee deleted")


@users_router.get("", response_model=list[UserSummary])
def api_list_users(
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
) -> list[UserSummary]:
    """Lightweight user list for author pickers."""
    return [UserSummary.model_validate(user) for user in list_employees(session)]
