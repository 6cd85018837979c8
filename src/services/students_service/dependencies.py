from src.infra.database import DatabaseManager
from src.services.students_service.repository import StudentRepository
from src.services.students_service.service import StudentService


def get_student_service() -> StudentService:
    return StudentService(StudentRepository(DatabaseManager()))
