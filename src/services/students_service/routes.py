from typing import List

from fastapi import APIRouter, Depends, status

from src.services.auth_service.dependencies import get_current_user, require_roles
from src.services.students_service.dependencies import get_student_service
from src.services.students_service.service import StudentService
from src.shared.models.enums import UserRole
from src.shared.models.student_dto import CreateStudentRequest, StudentDTO, UpdateStudentRequest
from src.shared.models.user_dto import AuthUser

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("", response_model=List[StudentDTO])
async def list_students(
    user: AuthUser = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    return await service.list_students(user)


@router.get("/{student_id}", response_model=StudentDTO)
async def get_student(
    student_id: int,
    user: AuthUser = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    return await service.get_student(user, student_id)


@router.post("", response_model=StudentDTO, status_code=status.HTTP_201_CREATED)
async def create_student(
    request: CreateStudentRequest,
    user: AuthUser = Depends(require_roles(UserRole.ADMIN, UserRole.PARENT)),
    service: StudentService = Depends(get_student_service),
):
    return await service.create_student(user, request)


@router.put("/{student_id}", response_model=StudentDTO)
async def update_student(
    student_id: int,
    request: UpdateStudentRequest,
    user: AuthUser = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    return await service.update_student(user, student_id, request)
