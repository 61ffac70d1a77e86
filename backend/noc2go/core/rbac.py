from fastapi import HTTPException, status

from noc2go.models.user import RoleEnum, UserEntry


ROLE_HIERARCHY = {
    RoleEnum.ADMIN: 2,
    RoleEnum.USER: 1,
}


def check_role(user: UserEntry, minimum_role: RoleEnum) -> UserEntry:
    if ROLE_HIERARCHY[user.role] < ROLE_HIERARCHY[minimum_role]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Requires at least {minimum_role.value} role",
        )
    return user
