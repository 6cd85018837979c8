from typing import List

from src.common.logger import log_info, TypeMsg
from src.core.access import can_manage_student, student_scope_for
from src.services.students_service.repository import StudentRepository
from src.shared.errors import Forbidden, NotFound
from src.shared.models.enums import UserRole
from src.shared.models.student_dto import CreateStudentRequest, StudentDTO, UpdateStudentRequest
from src.shared.models.user_dto import AuthUser


class StudentService:
    def __init__(self, repository: StudentRepository):
        self.repository = repository

    async def list_students(self, user: AuthUser) -> List[StudentDTO]:
        return await self.repository.list_students(student_scope_for(user))

    async def get_student(self, user: AuthUser, student_id: int) -> StudentDTO:
        student = await self.repository.find_student(student_id, student_scope_for(user))
        if student is None:
            raise NotFound("Student not found")
        return student

    async def create_student(self, user: AuthUser, request: CreateStudentRequest) -> StudentDTO:
        """Parents always create students under their own profile."""
        data = request.model_dump()
        if user.role == UserRole.PARENT:
            parent_id = await self.repository.find_parent_id(user.id)
            if parent_id is None:
                raise Forbidden("Forbidden: Parent record not found")
            data["parent_id"] = parent_id
        elif user.role != UserRole.ADMIN:
            raise Forbidden("Forbidden: Only parents and admins can create students")

        student = await self.repository.create_student(data)
        await log_info(f"Student {student.id} created by user {user.id}", type_msg=TypeMsg.INFO)
        return student

    async def update_student(
        self,
        user: AuthUser,
        student_id: int,
        request: UpdateStudentRequest,
    ) -> StudentDTO:
        exists, parent_user_id = await self.repository.find_parent_user_id(student_id)
        if not exists:
            raise NotFound("Student not found")
        if not can_manage_student(user, parent_user_id):
            raise Forbidden("Forbidden: You can only update your own children")

        student = await self.repository.update_student(student_id, request.model_dump(exclude_unset=True))
        if student is None:
            raise NotFound("Student not found")
        return student
